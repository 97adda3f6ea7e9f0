"""Auth package initialization"""

# Import classes only when needed to avoid circular imports
# Use direct imports in your code: from auth.manager import AuthManager

__all__ = [
    'AuthManager',
    'DeriveGate',
    'CredentialStore',
    'IdentityResolver',
]
