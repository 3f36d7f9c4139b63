# TutorTime - HTTP routes
