"""
Users app.

Owns the custom User model and the Profile that stores a user's push
endpoint (the FCM registration token of their current device).

The notification pipeline only reads the token and removes it when the push
service reports it as permanently invalid. Registering a new token is done
by the mobile client through PushTokenService.register_token.
"""
