# TutorTime - Time entry reconciliation and pay period service
