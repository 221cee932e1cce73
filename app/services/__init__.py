# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   auth_service     — email/password login and Google sign-in
#   user_service     — CRUD for User
#   post_service     — CRUD + pagination + view counting + stats for Post
#   project_service  — CRUD + pagination + stats for Project
#   admin_seeder     — idempotent administrator bootstrap
#
# All service functions accept an AsyncSession as their first argument
# so that the caller controls the transaction boundary via
# ``Database.session``.
