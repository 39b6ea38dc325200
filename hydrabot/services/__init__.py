"""
External services: Twitch, replay parsing and map image rendering.
"""
