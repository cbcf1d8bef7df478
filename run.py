"""
Application entry point.

Usage:
    python run.py

Starts the Flask development server on http://localhost:5000.
Demo employee: employee1 / Employee123! (seeded on an empty database).
"""

from payportal import create_app

app = create_app()

if __name__ == '__main__':
    print('\n  International Payments Portal API')
    print('  =================================')
    print('  Customer API: http://localhost:5000/api/auth')
    print('  Employee API: http://localhost:5000/api/employee')
    print('  Demo employee: employee1 / Employee123!\n')

    app.run(
        host='127.0.0.1',
        port=5000,
        debug=True,
    )
