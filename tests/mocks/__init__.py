"""Test doubles: fake HTTP transport, stub Spotify client and row builders."""
