# Overview: Role tiers and the permission codes each role carries.
# Each permission is defined as: (code, name, description)

ROLE_SUPERADMIN = "superadmin"
ROLE_MANAGER = "manager"
ROLE_VC = "vc"
ROLE_ADMIN = "admin"  # legacy mid tier, also granted by admin access codes
ROLE_CASHIER = "cashier"

ADMIN_USER_ROLES = (ROLE_SUPERADMIN, ROLE_MANAGER, ROLE_VC, ROLE_ADMIN)
ACCESS_CODE_ROLES = (ROLE_CASHIER, ROLE_ADMIN)

# Role assigned to every admin sign-up after the first one
DEFAULT_ADMIN_ROLE = ROLE_MANAGER


PERMISSION_DEFINITIONS = [
    ("CREATE_ORDER", "Create Order", "Ring up and check out orders"),
    ("VIEW_MENU", "View Menu", "Browse menu items and categories"),
    ("VIEW_REPORTS", "View Reports", "View sales statistics and recent orders"),
    ("EXPORT_REPORTS", "Export Reports", "Export daily and shift sales reports"),
    ("MANAGE_ACCESS_CODES", "Manage Access Codes", "Generate, list, deactivate and delete cashier access codes"),
    ("GENERATE_ADMIN_CODES", "Generate Admin Codes", "Generate access codes that grant the admin role"),
    ("MANAGE_ADMINS", "Manage Admins", "Create admin accounts, change roles and delete accounts"),
]


DEFAULT_ROLE_PERMISSIONS = {
    ROLE_SUPERADMIN: [
        "CREATE_ORDER",
        "VIEW_MENU",
        "VIEW_REPORTS",
        "EXPORT_REPORTS",
        "MANAGE_ACCESS_CODES",
        "GENERATE_ADMIN_CODES",
        "MANAGE_ADMINS",
    ],
    ROLE_MANAGER: [
        "CREATE_ORDER",
        "VIEW_MENU",
        "VIEW_REPORTS",
        "EXPORT_REPORTS",
        "MANAGE_ACCESS_CODES",
    ],
    ROLE_ADMIN: [
        "CREATE_ORDER",
        "VIEW_MENU",
        "VIEW_REPORTS",
        "EXPORT_REPORTS",
        "MANAGE_ACCESS_CODES",
    ],
    ROLE_VC: [
        "VIEW_MENU",
        "VIEW_REPORTS",
        "EXPORT_REPORTS",
    ],
    ROLE_CASHIER: [
        "CREATE_ORDER",
        "VIEW_MENU",
    ],
}


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_role_permissions(role: str | None) -> set[str]:
    """Permission codes carried by a role; unknown roles carry none."""
    if role is None:
        return set()
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, ()))