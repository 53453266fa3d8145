# bakery/database/seed.py
"""Load the sample catalog and a back-office account.

    python -m bakery.database.seed

Existing products (same slug) are left untouched. The admin account is
taken from ADMIN_EMAIL / ADMIN_PASSWORD and its password is reset on each run.
"""
import asyncio
import logging
import os
from decimal import Decimal
from ..config import setup_logging
from ..models.product import ProductCategory
from ..utils.security import hash_password
from .database import Database

logger = logging.getLogger(__name__)

IMAGE = "https://images.unsplash.com/{}?q=80&w=500"

SAMPLE_PRODUCTS = [
    ("Croissant au beurre", "croissant-beurre", "Délicieux croissant pur beurre artisanal",
     ProductCategory.PASTRY_VIENNOISERIE, "1500", "photo-1555507036-ab1f4038808a", 80, 50),
    ("Baguette tradition", "baguette-tradition", "Baguette tradition française croustillante",
     ProductCategory.BAKERY, "800", "photo-1597079910443-60c43fc4f72f", 250, 100),
    ("Pain au chocolat", "pain-chocolat", "Pain au chocolat avec pépites de chocolat noir",
     ProductCategory.PASTRY_VIENNOISERIE, "1200", "photo-1623334044303-241021148842", 90, 40),
    ("Éclair au café", "eclair-cafe", "Éclair gourmand fourré à la crème au café",
     ProductCategory.PASTRY, "2000", "photo-1511961234817-068305f6368d", 100, 20),
    ("Tarte aux pommes", "tarte-pommes", "Tarte aux pommes maison avec crème pâtissière",
     ProductCategory.PASTRY, "3500", "photo-1568571780765-9276ac8b75a2", 400, 10),
    ("Pain complet", "pain-complet", "Pain complet aux céréales riche en fibres",
     ProductCategory.BAKERY, "1000", "photo-1549931319-a545dcf3bc73", 500, 30),
    ("Mille-feuille", "mille-feuille-vanille", "Pâte feuilletée croustillante et crème vanille",
     ProductCategory.PASTRY, "2500", "photo-1626645738196-c2a7c87a8f58", 120, 15),
    ("Brioche tressée", "brioche-tressee", "Brioche moelleuse au sucre perlé",
     ProductCategory.PASTRY_VIENNOISERIE, "3000", "photo-1606313564200-e75d5e30476c", 400, 25),
    ("Pain de campagne", "pain-campagne-levain", "Pain au levain naturel cuit au four à pierre",
     ProductCategory.BAKERY, "1800", "photo-1586444248902-2f64eddc13df", 600, 20),
    ("Paris-Brest", "paris-brest-praline", "Pâte à choux et crème mousseline pralinée",
     ProductCategory.PASTRY, "2800", "photo-1509365465985-25d11c17e812", 150, 12),
    ("Macarons assortis", "macarons-assortis-coffret",
     "Coffret de 6 macarons artisanaux (vanille, chocolat, pistache)",
     ProductCategory.PASTRY, "5000", "photo-1569864358642-9d16197022c9", 150, 15),
]


async def seed(db: Database):
    created = 0
    async with db.transaction() as repo:
        for name, slug, description, category, price, image, weight, stock in SAMPLE_PRODUCTS:
            if await repo.slug_exists(slug):
                continue
            await repo.insert_product({
                "name": name,
                "slug": slug,
                "description": description,
                "category": category,
                "price": Decimal(price),
                "image_url": IMAGE.format(image),
                "weight": weight,
                "stock": stock,
            })
            created += 1
        logger.info(f"{created} sample products created")

        email = os.getenv("ADMIN_EMAIL", "").strip().lower()
        password = os.getenv("ADMIN_PASSWORD", "")
        if email and password:
            await repo.insert_admin({
                "email": email,
                "password_hash": hash_password(password),
                "role": "SUPER_ADMIN",
            })
            logger.info(f"Admin account {email} ready")
        else:
            logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set, no admin account created")


async def main():
    setup_logging()
    db = Database()
    await db.connect()
    try:
        await seed(db)
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
