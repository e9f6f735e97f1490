"""
Script to create a creator account or rotate its API token
Usage: python create_creator.py <email> [name]
"""
import sys
from app import create_app
from models import db
from models.creator import Creator
from utils.auth_utils import issue_api_token

def create_creator(email, name=None):
    """Create creator (or rotate token of an existing one) and print the bearer token"""
    app = create_app()

    with app.app_context():
        email = email.strip().lower()
        creator = Creator.query.filter_by(email=email).first()

        if creator:
            creator.is_active = True
            db.session.commit()
            print("[SUCCESS] Existing creator found, API token rotated.")
        else:
            creator = Creator(
                name=name or email.split('@')[0],
                email=email,
                is_active=True
            )
            db.session.add(creator)
            db.session.commit()
            print("[SUCCESS] Creator created successfully!")

        token = issue_api_token(creator)
        db.session.commit()

        print("\n" + "="*50)
        print("CREATOR API CREDENTIALS:")
        print("="*50)
        print(f"Creator ID: {creator.id}")
        print(f"Email: {creator.email}")
        print(f"Authorization: Bearer {token}")
        print("="*50)
        print("Store the token now; it cannot be shown again.")

if __name__ == '__main__':
    if len(sys.argv) < 2:
        print("Usage: python create_creator.py <email> [name]")
        sys.exit(1)
    create_creator(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
