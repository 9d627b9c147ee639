"""
Admissions Module

Student admission applications and their review lifecycle:
1. Public submission with guardian contacts (exactly one primary guardian)
2. Guarded status transitions, assessment and decisions by staff
3. Supporting documents attached by guardians or staff
4. Conversion of an accepted application into a student

API Endpoints:
- router.py: public submission, tracking and guardian actions
- admin_router.py: staff review, decisions, conversion and deletion
"""
