"""
Operator commands, registered on the Flask CLI.

Usage:
    flask --app wsgi create-employee EMP002 jsmith "Jane Smith"
"""

import click
from flask import Flask
from flask.cli import with_appcontext

from payportal.auth.models import create_employee
from payportal.auth.passwords import analyze_strength, hash_password
from payportal.errors import DuplicateRegistrationError
from payportal.logging_config import audit_log


@click.command('create-employee')
@click.argument('employee_id')
@click.argument('username')
@click.argument('full_name')
@click.option('--role', type=click.Choice(['employee', 'admin']), default='employee',
              show_default=True)
@click.option('--department', default='International Payments', show_default=True)
@click.password_option(help='Password for the new account (prompted if omitted).')
@with_appcontext
def create_employee_command(employee_id, username, full_name, role, department, password):
    """Create an employee account for the verification portal."""
    report = analyze_strength(password)
    if not report.is_strong:
        raise click.BadParameter(' '.join(report.feedback), param_hint='password')

    try:
        new_id = create_employee(
            employee_id=employee_id,
            full_name=full_name,
            username=username,
            password=hash_password(password),
            role=role,
            department=department,
        )
    except DuplicateRegistrationError as exc:
        raise click.ClickException(exc.message) from exc

    audit_log(
        event='employee_created',
        message=f'Employee account created: {username}',
        principal_type='employee',
        username=username,
        principal_id=new_id,
    )
    click.echo(f'Created employee {employee_id} ({username}) with id {new_id}.')


def init_cli(app: Flask) -> None:
    app.cli.add_command(create_employee_command)
