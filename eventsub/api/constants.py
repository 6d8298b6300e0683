"""Twitch API endpoint constants."""

HELIX_BASE_URL = "https://api.twitch.tv/helix/"
EVENTSUB_BASE_URL = HELIX_BASE_URL + "eventsub/"

OAUTH2_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
SUBSCRIPTIONS_URL = EVENTSUB_BASE_URL + "subscriptions"
