"""Seed script to populate the database with sample accounts, chats, a group and a draft order."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend" / "src"))

from sqlalchemy.dialects.postgresql import insert  # noqa: E402

from core.database import Database  # noqa: E402
from models import Account  # noqa: E402
from services.conversation import ConversationService  # noqa: E402
from services.group import GroupService  # noqa: E402
from services.group_message import GroupMessageService  # noqa: E402
from services.message import MessageService  # noqa: E402
from services.order import OrderService  # noqa: E402


async def seed():
    database = Database.from_settings()
    await database.create_schema()

    accounts = [
        {"account": "marie", "description": "Marie"},
        {"account": "paul", "description": "Paul"},
        {"account": "lucas", "description": "Lucas"},
    ]

    try:
        async with database.transaction() as db:
            await db.execute(insert(Account).values(accounts).on_conflict_do_nothing())

            # Direct chat
            messages = MessageService(db)
            conversations = ConversationService(db)
            for sender, receiver, text in [
                ("marie", "paul", "Salut Paul !"),
                ("paul", "marie", "Hello Marie, ça va ?"),
            ]:
                sent = await messages.send_text_message(sender, receiver, text)
                await conversations.update_conversations(sender, receiver, text, sent.timestamp)

            # Group chat
            group = await GroupService(db).create_group(
                "Weekend", "marie", "Plans for Saturday", ["paul", "lucas"]
            )
            text = "Who's in?"
            sent = await GroupMessageService(db).send_group_text_message(
                group["group_id"], "marie", text
            )
            touched = await conversations.update_group_conversations(
                group["group_id"], "marie", text, sent.timestamp
            )

            # Draft order with two records
            orders = OrderService(db)
            order = await orders.reserve("C001", "Marie apartment", "0600000000", "Lyon")
            for record in [
                {"product": "curtain", "width": "180", "height": "240"},
                {"product": "roman shade", "width": "90", "height": "150"},
            ]:
                await orders.add_record(order["qono"], record)

        print("Database seeded with sample data!")
        print(f"  {len(accounts)} accounts")
        print("  2 direct messages")
        print(f"  1 group ({group['group_id']}) with {touched} members")
        print(f"  1 draft order ({order['qono']}) with 2 records")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
