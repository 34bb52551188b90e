# Shared enum values for goals, milestones and tasks.
PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
