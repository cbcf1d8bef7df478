"""
Payment input validation.

- Amount: up to 10 integer digits, at most 2 decimals, 0.01 to 1,000,000
- Currency / provider: allow-lists
- SWIFT/BIC: 8 or 11 characters (bank, country, location, optional branch)
- Beneficiary account: 5-34 letters, digits, spaces or hyphens (IBAN-sized)
"""

from wtforms import Field, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, Optional, Regexp, ValidationError

from payportal.auth.forms import JSONForm, strip, upper
from payportal.payments.models import CURRENCIES, NOTES_MAX_LENGTH, PROVIDERS, to_cents


class AmountField(StringField):
    """Accepts JSON numbers as well as strings; keeps the text for exact decimal parsing."""

    def process_formdata(self, valuelist):
        if valuelist:
            value = valuelist[0]
            self.data = None if value is None else str(value).strip()


def amount_in_range(form, field):
    if to_cents(field.data) is None:
        raise ValidationError('Payment amount must be between 0.01 and 1,000,000.')


class PaymentForm(JSONForm):
    amount = AmountField(
        'Amount',
        validators=[
            DataRequired(message='Amount is required.'),
            Regexp(r'^\d{1,10}(\.\d{1,2})?$', message='Invalid amount format.'),
            amount_in_range,
        ],
    )

    currency = StringField(
        'Currency',
        filters=[strip, upper],
        validators=[
            DataRequired(message='Currency is required.'),
            AnyOf(CURRENCIES, message='Currency not supported.'),
        ],
    )

    provider = StringField(
        'Provider',
        filters=[strip],
        validators=[
            DataRequired(message='Provider is required.'),
            AnyOf(PROVIDERS, message='Invalid provider selected.'),
        ],
    )

    swift_code = StringField(
        'SWIFT code',
        filters=[strip, upper],
        validators=[
            DataRequired(message='SWIFT code is required.'),
            Regexp(r'^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$', message='Invalid SWIFT code format.'),
        ],
    )

    beneficiary_account = StringField(
        'Beneficiary account',
        filters=[strip],
        validators=[
            DataRequired(message='Beneficiary account is required.'),
            Regexp(
                r'^[A-Za-z0-9\- ]{5,34}$',
                message='Beneficiary account must be 5-34 letters, numbers, spaces or hyphens.',
            ),
        ],
    )


class VerifyForm(JSONForm):
    # Longer notes are rejected here; the ledger also truncates.
    notes = TextAreaField(
        'Notes',
        filters=[strip],
        validators=[
            Optional(),
            Length(max=NOTES_MAX_LENGTH, message='Notes must be at most 500 characters.'),
        ],
    )


class TransactionIdListField(Field):
    """A JSON array of positive integer ids."""

    def process_formdata(self, valuelist):
        self.data = list(valuelist)

    def pre_validate(self, form):
        if not self.data:
            raise ValidationError('At least one transaction id is required.')
        for value in self.data:
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError('Transaction ids must be positive integers.')


class BulkSubmitForm(JSONForm):
    transaction_ids = TransactionIdListField('Transaction ids')
