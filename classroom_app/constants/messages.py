"""User-facing messages returned with command results."""

INVALID_CODE: str = "Invalid classroom code"
ALREADY_ENROLLED: str = "You have already joined this classroom"
JOINED: str = "Successfully joined classroom!"
CLASSROOM_NOT_FOUND: str = "Classroom not found"
QUIZ_NOT_FOUND: str = "Quiz not found"
QUESTION_NOT_FOUND: str = "Question not found"
USER_NOT_FOUND: str = "User not found"
ONLY_STUDENTS_JOIN: str = "Only students can join classrooms"
ONLY_TEACHERS_CREATE: str = "Only teachers can create classrooms"
NOT_CLASSROOM_OWNER: str = "Only the classroom teacher can change this classroom"
NOT_ENROLLED: str = "You are not enrolled in this classroom"
FEEDBACK_ALREADY_SUBMITTED: str = "You have already submitted feedback for this classroom"
QUIZ_ALREADY_ATTEMPTED: str = "You have already attempted this quiz"
FEEDBACK_SUBMITTED: str = "Feedback submitted successfully!"
QUIZ_SUBMITTED_TEMPLATE: str = "Quiz submitted! You scored {score}/{total}"
CLASSROOM_CREATED: str = "Classroom created successfully!"
QUESTION_ADDED: str = "Question added successfully!"
QUESTION_REMOVED: str = "Question removed successfully!"
QUIZ_CREATED: str = "Quiz created successfully!"
CODE_SPACE_EXHAUSTED: str = "Could not allocate a unique classroom code, please try again later"
USER_REGISTERED: str = "Registration successful!"
USER_EXISTS: str = "User already exists"
UNANSWERED_QUESTIONS: str = "Please answer all questions before submitting"
