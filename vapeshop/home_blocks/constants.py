from vapeshop.common.logging_setup import get_logger

logger = get_logger("vapeshop.home_blocks")

# seeded into an empty table, and restored by the admin reset
DEFAULT_BLOCKS = [
    {"key": "hero", "title": "Добро пожаловать в Medusa",
     "description": "Главный баннер с приветствием", "is_visible": True, "position": 1},
    {"key": "why-choose-us", "title": "Почему выбирают нас",
     "description": "Блок с преимуществами", "is_visible": True, "position": 2},
    {"key": "popular-products", "title": "Популярные товары",
     "description": "Блок с популярными продуктами", "is_visible": True, "position": 3},
    {"key": "bonus-program", "title": "Бонусная программа",
     "description": "Блок с описанием бонусной программы", "is_visible": True, "position": 4},
    {"key": "cta", "title": "Готовы начать свой вейп-путь?",
     "description": "Призыв к действию", "is_visible": True, "position": 5},
]
