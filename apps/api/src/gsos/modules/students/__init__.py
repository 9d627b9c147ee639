"""
Students Module

Student and guardian records. Enrollment consumes accepted admission
applications (see service.enroll_accepted_applicant).
"""
