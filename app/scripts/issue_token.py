from app.core.security import create_access_token
import sys

# usage: python -m app.scripts.issue_token <user_id> <username> <role>
if len(sys.argv) != 4:
    print("usage: python -m app.scripts.issue_token <user_id> <username> <role>")
    sys.exit(1)

user_id, username, role = sys.argv[1:]
print(create_access_token(int(user_id), username, role))
