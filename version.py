# TheodoraQ Assessment - Build Version

BUILD_VERSION = "1.0.0"
BUILD_DATE = "2026-10-17"
BUILD_ID = "quiz-assignments"

# Changes in this build:
# - Classes with invite codes and roster management
# - Quiz assignments with weightage, subgroup and subclass filters
# - Candidate quiz flow with late policy and proctoring telemetry
# - Bulk roster invitations from CSV/Excel
