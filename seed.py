from app import create_app
from models import db, DemoStateEntry
from demo_accounts import DEMO_PASSWORD, ensure_demo_accounts

app = create_app()

def clear_demo_state():
    """Deletes persisted demo markers so the next login starts clean"""
    print("🗑️  Cleaning demo state...")
    DemoStateEntry.query.delete()
    db.session.commit()
    print("✅ Demo state cleared.")

def seed_demo_accounts():
    print("🏗️  Seeding demo accounts...")
    created = ensure_demo_accounts()
    for user in created:
        print(f"   ✅ {user.full_name} ({user.role}) -> {user.username} / {DEMO_PASSWORD}")
    if not created:
        print("⚠️  Demo accounts already exist.")

if __name__ == '__main__':
    with app.app_context():
        clear_demo_state()
        seed_demo_accounts()
        print("🌱 Seeding complete!")
