'''
TutorSchool backend: lesson scheduling and lifecycle service.

The ASGI application lives in `tutor_school_backend.main:app`.
'''
