"""User manager: Cognito user administration API and admin console."""
