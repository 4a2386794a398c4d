"""
Fixed vocabularies for identity fields.

Values are selected by index-modular lookup, never by unmodulated random
draws, so the same logical index always maps to the same words.
"""

DEPARTMENT_NAMES = [
    "Technology", "Sales", "Marketing", "Human Resources", "Finance",
    "Operations", "Support", "Development", "Design", "Quality",
]

CATEGORY_NAMES = [
    "Electronics", "Computing", "Home and Garden", "Sports", "Books",
    "Clothing", "Accessories", "Automotive", "Tools", "Health",
]

FIRST_NAMES = [
    "Joao", "Maria", "Jose", "Ana", "Pedro", "Carla", "Paulo", "Fernanda",
    "Carlos", "Juliana", "Ricardo", "Patricia", "Antonio", "Luciana", "Marcos",
]

LAST_NAMES = [
    "Silva", "Santos", "Oliveira", "Sousa", "Lima", "Pereira", "Costa",
    "Rodrigues", "Martins", "Jesus", "Rocha", "Ribeiro", "Alves", "Monteiro",
]

PRODUCT_ADJECTIVES = [
    "Premium", "Deluxe", "Pro", "Ultra", "Smart", "Eco", "Digital",
    "Professional", "Advanced", "Compact", "Wireless", "Portable",
]

PRODUCT_NOUNS = [
    "Notebook", "Mouse", "Keyboard", "Monitor", "Smartphone", "Tablet",
    "Headset", "Camera", "Printer", "Router", "Drive", "Memory",
]

BRANDS = [
    "Acme", "Globex", "Initech", "Umbrella", "Stark", "Wayne", "Hooli",
    "Soylent", "Vandelay", "Tyrell", "Cyberdyne",
]

# Multipliers for pool[(i * k) % len(pool)]; each is coprime to the pool
# lengths above so selection cycles through the whole pool.
NAME_STRIDES = {
    "first": 7,
    "last": 11,
    "adjective": 5,
    "noun": 7,
    "brand": 3,
}

# Value ranges (low inclusive, high exclusive)
BUDGET_RANGE = (50_000, 500_000)
PRICE_CENTS_RANGE = (1_000, 100_000)  # 10.00 - 999.99
STOCK_RANGE = (10, 510)
ORDER_TOTAL_CENTS_RANGE = (5_000, 100_000)  # 50.00 - 999.99
QUANTITY_RANGE = (1, 6)
DAYS_BACK_RANGE = (0, 365)
