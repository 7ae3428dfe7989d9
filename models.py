from flask_login import UserMixin      # provides default implementations for user authentication methods (https://www.geeksforgeeks.org/python/how-to-add-authentication-to-your-app-with-flask-login/)
from dateutil.parser import parse      # parses date strings into datetime objects (https://www.geeksforgeeks.org/nlp/nlp-using-dateutil-to-parse-dates/)

FARMER = "farmer"
EMPLOYEE = "employee"
ROLES = (FARMER, EMPLOYEE)


def _timestamp(value):
    if isinstance(value, str) and value:
        return parse(value)      # Converts string timestamp to a datetime object using dateutil.parser
    return value


def _date(value):
    if isinstance(value, str) and value:
        return parse(value).date()
    return value


# Inherits from UserMixin to integrate with Flask-Login's user session management
class User(UserMixin):
    def __init__(self, id, email, role=None, full_name=""):
        self.id = id
        self.email = email
        self.role = role            # None when the profile could not be resolved
        self.full_name = full_name

    @property
    def is_farmer(self):
        return self.role == FARMER

    @property
    def is_employee(self):
        return self.role == EMPLOYEE

    @property
    def role_label(self):
        # anything that is not an employee is shown as a farmer in the navbar
        return "Employee" if self.is_employee else "Farmer"

    @property
    def initial(self):
        return self.email[0].upper() if self.email else "U"


class Profile:
    def __init__(self, id, full_name, role, created_at):
        self.id = id
        self.full_name = full_name
        self.role = role
        self.created_at = created_at

    @property
    def role_label(self):
        return "Employee" if self.role == EMPLOYEE else "Farmer"

    @staticmethod
    def from_supabase(data):
        return Profile(
            id=data["id"],
            full_name=data.get("full_name") or "",
            role=data.get("role"),
            created_at=_timestamp(data.get("created_at")),
        )


class Product:
    def __init__(self, id, name, category, production_date, farmer_id,
                 created_at=None, updated_at=None, farmer_name=None):
        self.id = id
        self.name = name
        self.category = category
        self.production_date = production_date
        self.farmer_id = farmer_id
        self.created_at = created_at
        self.updated_at = updated_at
        self.farmer_name = farmer_name      # only set when the row was joined with profiles

    @staticmethod
    def from_supabase(data):
        owner = data.get("profiles") or {}     # embedded profiles(full_name) for employee queries
        return Product(
            id=data["id"],
            name=data["name"],
            category=data["category"],
            production_date=_date(data.get("production_date")),
            farmer_id=data["farmer_id"],
            created_at=_timestamp(data.get("created_at")),
            updated_at=_timestamp(data.get("updated_at")),
            farmer_name=owner.get("full_name"),
        )
