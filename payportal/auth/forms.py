"""
WTForms form definitions with input validation.

Forms are fed from the JSON request body (flask-wtf wraps a JSON object
into form data on POST/PUT/PATCH). Server-side validation is the
authoritative check; the portals' client-side checks are a UX
convenience only.

Input constraints:
- Full name: 2-50 letters, spaces, hyphens, apostrophes
- ID number: 13 digits with a valid South African check digit
- Account number: 8-12 digits
- Username: 3-30 letters, digits, underscores
- Password: max 128 chars (bounds hashing work); strength rules at registration
"""

from flask import request
from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField
from wtforms.validators import DataRequired, Length, Regexp, StopValidation, ValidationError

from payportal import errors
from payportal.auth.passwords import analyze_strength


def strip(value):
    """Coerce JSON scalars to text and trim surrounding whitespace."""
    if value is None:
        return None
    return str(value).strip()


def upper(value):
    return value.upper() if isinstance(value, str) else value


class JSONForm(FlaskForm):
    """Base form for JSON endpoints. CSRF is checked by the view decorator, not here."""

    class Meta:
        csrf = False


def validate_json(form_class, **kwargs):
    """
    Build and validate a form from the request body.

    Raises:
        payportal.errors.ValidationError: non-object body, or field errors
            (reported per field).
    """
    if not isinstance(request.get_json(silent=True), dict):
        raise errors.ValidationError('Request body must be a JSON object.')
    form = form_class(**kwargs)
    if not form.validate():
        raise errors.ValidationError(fields=form.errors)
    return form


# --- Validators ---

def luhn_check_digit(digits: str) -> int:
    """Check digit for the first 12 digits of a South African ID number."""
    total = 0
    for index, char in enumerate(digits):
        digit = int(char)
        if index % 2 == 0:
            total += digit
        else:
            doubled = digit * 2
            total += doubled - 9 if doubled > 9 else doubled
    return (10 - total % 10) % 10


def is_valid_sa_id(id_number: str) -> bool:
    if not id_number or len(id_number) != 13 or not id_number.isdigit():
        return False
    return luhn_check_digit(id_number[:12]) == int(id_number[12])


def sa_id_number(form, field):
    if not is_valid_sa_id(field.data or ''):
        raise ValidationError('Invalid South African ID number.')


def text_value(form, field):
    """Reject JSON numbers, booleans, arrays and objects before length checks run."""
    if field.data is not None and not isinstance(field.data, str):
        raise StopValidation(f'{field.label.text} must be a string.')


# Field definitions shared between forms.

FULL_NAME = Regexp(
    r"^[a-zA-Z\s\-']{2,50}$",
    message='Full name must be 2-50 letters, spaces, hyphens or apostrophes.',
)
ACCOUNT_NUMBER = Regexp(r'^[0-9]{8,12}$', message='Account number must be 8-12 digits.')
USERNAME = Regexp(
    r'^[a-zA-Z0-9_]{3,30}$',
    message='Username must be 3-30 letters, numbers or underscores.',
)
PASSWORD_MAX = Length(max=128, message='Password is too long.')


class RegistrationForm(JSONForm):
    """Customer self-registration."""

    full_name = StringField(
        'Full name',
        filters=[strip],
        validators=[DataRequired(message='Full name is required.'), FULL_NAME],
    )

    id_number = StringField(
        'ID number',
        filters=[strip],
        validators=[DataRequired(message='ID number is required.'), sa_id_number],
    )

    account_number = StringField(
        'Account number',
        filters=[strip],
        validators=[DataRequired(message='Account number is required.'), ACCOUNT_NUMBER],
    )

    username = StringField(
        'Username',
        filters=[strip],
        validators=[DataRequired(message='Username is required.'), USERNAME],
    )

    password = PasswordField(
        'Password',
        validators=[text_value, DataRequired(message='Password is required.'), PASSWORD_MAX],
    )

    def validate_password(self, field):
        report = analyze_strength(
            field.data,
            personal_info=(self.username.data, self.full_name.data, self.id_number.data),
            registration=True,
        )
        if not report.is_strong:
            raise ValidationError(' '.join(report.feedback))


class CustomerLoginForm(JSONForm):
    """Customers log in with username, account number and password."""

    username = StringField(
        'Username',
        filters=[strip],
        validators=[DataRequired(message='Username is required.'), USERNAME],
    )

    account_number = StringField(
        'Account number',
        filters=[strip],
        validators=[DataRequired(message='Account number is required.'), ACCOUNT_NUMBER],
    )

    password = PasswordField(
        'Password',
        validators=[text_value, DataRequired(message='Password is required.'), PASSWORD_MAX],
    )


class EmployeeLoginForm(JSONForm):
    username = StringField(
        'Username',
        filters=[strip],
        validators=[DataRequired(message='Username is required.'), USERNAME],
    )

    password = PasswordField(
        'Password',
        validators=[text_value, DataRequired(message='Password is required.'), PASSWORD_MAX],
    )


class ChangePasswordForm(JSONForm):
    current_password = PasswordField(
        'Current password',
        validators=[text_value, DataRequired(message='Current password is required.'), PASSWORD_MAX],
    )

    # Strength and history are enforced by rotate_password.
    new_password = PasswordField(
        'New password',
        validators=[text_value, DataRequired(message='New password is required.'), PASSWORD_MAX],
    )
