"""School gradebook service: exams, assignments, grades and GPA."""
