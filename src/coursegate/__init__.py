"""coursegate — course platform backend.

Role-gated access to courses, chapters and videos, learner quizzes,
user documents and the admin approval workflow.
"""

__version__ = "0.1.0"
