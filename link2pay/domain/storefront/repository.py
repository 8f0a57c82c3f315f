"""Storefront repository - Database operations for profiles, products and sections"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Profile
from ...models_invoice import Product, StoreSection


class StorefrontRepository:
    """Repository for storefront database operations"""

    @staticmethod
    def handle_exists(db: Session, handle: str, exclude_user_id: Optional[str] = None) -> bool:
        query = db.query(Profile.id).filter(Profile.store_handle == handle)
        if exclude_user_id:
            query = query.filter(Profile.id != exclude_user_id)
        return query.first() is not None

    @staticmethod
    def get_profile_by_handle(db: Session, handle: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.store_handle == handle).first()

    @staticmethod
    def update_profile(db: Session, profile: Profile, **updates) -> Profile:
        for key, value in updates.items():
            if hasattr(profile, key):
                setattr(profile, key, value)
        db.commit()
        db.refresh(profile)
        return profile

    # Products

    @staticmethod
    def get_products(db: Session, user_id: str, active_only: bool = False) -> list[Product]:
        query = db.query(Product).filter(Product.user_id == user_id)
        if active_only:
            query = query.filter(Product.is_active.is_(True))
        return query.order_by(Product.created_at.desc()).all()

    @staticmethod
    def get_product(db: Session, product_id: str, user_id: str) -> Optional[Product]:
        return (
            db.query(Product).filter(Product.id == product_id, Product.user_id == user_id).first()
        )

    @staticmethod
    def get_product_by_code(db: Session, code: str, user_id: str) -> Optional[Product]:
        return (
            db.query(Product)
            .filter(Product.product_id == code, Product.user_id == user_id)
            .first()
        )

    @staticmethod
    def create_product(db: Session, user_id: str, **product_data) -> Product:
        product = Product(user_id=user_id, **product_data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def update_product(db: Session, product: Product, **updates) -> Product:
        for key, value in updates.items():
            if value is not None and hasattr(product, key):
                setattr(product, key, value)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def delete(db: Session, obj) -> None:
        db.delete(obj)
        db.commit()

    # Sections

    @staticmethod
    def get_sections(db: Session, user_id: str, enabled_only: bool = False) -> list[StoreSection]:
        query = db.query(StoreSection).filter(StoreSection.user_id == user_id)
        if enabled_only:
            query = query.filter(StoreSection.is_enabled.is_(True))
        return query.order_by(StoreSection.section_order, StoreSection.created_at).all()

    @staticmethod
    def get_section(db: Session, section_id: str, user_id: str) -> Optional[StoreSection]:
        return (
            db.query(StoreSection)
            .filter(StoreSection.id == section_id, StoreSection.user_id == user_id)
            .first()
        )

    @staticmethod
    def create_section(db: Session, user_id: str, **section_data) -> StoreSection:
        section = StoreSection(user_id=user_id, **section_data)
        db.add(section)
        db.commit()
        db.refresh(section)
        return section

    @staticmethod
    def update_section(db: Session, section: StoreSection, **updates) -> StoreSection:
        for key, value in updates.items():
            if value is not None and hasattr(section, key):
                setattr(section, key, value)
        db.commit()
        db.refresh(section)
        return section
