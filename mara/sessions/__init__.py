"""Session lifecycle package.

Architectural role:
    - `registry`: session ID -> live `Session`, chat-ID minting and continuity
      recovery at creation time.
    - `student_directory`: enrolment lookup used to snapshot `StudentInfo`.
"""
