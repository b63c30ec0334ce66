"""Identity and access: roles, sessions, profiles and the route gate."""
