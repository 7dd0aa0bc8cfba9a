"""Users app package.

Defines the custom user model with a closed set of roles (tenant,
landlord, admin). Use ``apps.users.models.CustomUser`` as the
AUTH_USER_MODEL throughout the project.
"""
