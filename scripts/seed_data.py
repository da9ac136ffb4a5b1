"""
기본 리워드 카탈로그 시드 스크립트
카테고리 4종과 기본 리워드를 생성 (이미 있는 항목은 건너뜀)
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from findme.database.connection import SessionLocal
from findme.models.rewards import Reward, RewardCategory, RewardStatus


DEFAULT_CATEGORIES = [
    {
        "name": "E-commerce",
        "description": "Online shopping vouchers and discounts",
        "icon": "🛒",
    },
    {
        "name": "Food & Beverage",
        "description": "Restaurant and cafe vouchers",
        "icon": "🍽️",
    },
    {
        "name": "Entertainment",
        "description": "Movie tickets and entertainment vouchers",
        "icon": "🎬",
    },
    {
        "name": "Transportation",
        "description": "Transport and ride-sharing vouchers",
        "icon": "🚗",
    },
]

# (카테고리명, 리워드 정보)
DEFAULT_REWARDS = [
    ("E-commerce", {
        "name": "RM10 Shopee Voucher",
        "description": "Get RM10 off your next purchase on Shopee. Valid for all categories.",
        "points_required": 150,
        "stock_quantity": 100,
        "voucher_code_prefix": "SHOPEE",
        "validity_days": 30,
    }),
    ("E-commerce", {
        "name": "RM15 Lazada Voucher",
        "description": "Enjoy RM15 discount on Lazada. Minimum spend RM50.",
        "points_required": 200,
        "stock_quantity": 50,
        "voucher_code_prefix": "LAZADA",
        "validity_days": 30,
    }),
    ("Food & Beverage", {
        "name": "RM20 Starbucks Voucher",
        "description": "Treat yourself to a coffee or snack at Starbucks.",
        "points_required": 250,
        "stock_quantity": 75,
        "voucher_code_prefix": "STARBUCKS",
        "validity_days": 60,
    }),
    ("Food & Beverage", {
        "name": "RM25 McDonald's Voucher",
        "description": "Enjoy a meal at McDonald's with this voucher.",
        "points_required": 300,
        "stock_quantity": 100,
        "voucher_code_prefix": "MCD",
        "validity_days": 45,
    }),
    ("Entertainment", {
        "name": "RM30 Cinema Voucher",
        "description": "Watch the latest movies at any major cinema chain.",
        "points_required": 400,
        "stock_quantity": 30,
        "voucher_code_prefix": "CINEMA",
        "validity_days": 90,
    }),
    ("Transportation", {
        "name": "RM20 Grab Voucher",
        "description": "Use this voucher for Grab rides or food delivery.",
        "points_required": 250,
        "stock_quantity": 80,
        "voucher_code_prefix": "GRAB",
        "validity_days": 30,
    }),
    ("E-commerce", {
        "name": "RM50 Amazon Voucher",
        "description": "Shop on Amazon with this generous voucher.",
        "points_required": 600,
        "stock_quantity": 20,
        "voucher_code_prefix": "AMAZON",
        "validity_days": 120,
    }),
    ("Food & Beverage", {
        "name": "RM40 KFC Voucher",
        "description": "Enjoy a family meal at KFC.",
        "points_required": 450,
        "stock_quantity": 60,
        "voucher_code_prefix": "KFC",
        "validity_days": 45,
    }),
]


def seed_categories(db: Session) -> dict:
    """카테고리 시드 - 이름 기준으로 중복 생성하지 않음"""
    categories = {}
    for data in DEFAULT_CATEGORIES:
        category = (
            db.query(RewardCategory).filter(RewardCategory.name == data["name"]).first()
        )
        if category is None:
            category = RewardCategory(**data)
            db.add(category)
            db.flush()
            print(f"   + category: {data['name']}")
        categories[data["name"]] = category
    return categories


def seed_rewards(db: Session, categories: dict) -> int:
    """리워드 시드 - (카테고리, 이름) 기준으로 중복 생성하지 않음"""
    created = 0
    for category_name, data in DEFAULT_REWARDS:
        category = categories[category_name]
        exists = (
            db.query(Reward)
            .filter(Reward.category_id == category.id, Reward.name == data["name"])
            .first()
        )
        if exists:
            continue
        db.add(
            Reward(
                category_id=category.id,
                status=RewardStatus.ACTIVE.value,
                redeemed_count=0,
                **data,
            )
        )
        created += 1
        print(f"   + reward: {data['name']} ({data['points_required']} points)")
    return created


def seed_rewards_data():
    """기본 리워드 카탈로그 시드"""
    db = SessionLocal()
    try:
        categories = seed_categories(db)
        created = seed_rewards(db, categories)
        db.commit()
        print(f"Reward catalog seeded: {len(categories)} categories, {created} new rewards")
    except Exception as e:
        db.rollback()
        print(f"Reward catalog seeding failed: {str(e)}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_rewards_data()
