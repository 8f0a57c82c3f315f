"""Badge catalogue for the merchant rewards programme"""

BADGES = {
    "first_invoice": {
        "name": "First Invoice",
        "description": "Sent your very first invoice",
        "icon": "🎉",
        "criteria": {"type": "invoice_count", "value": 1, "period": "all_time"},
        "points": 50,
    },
    "consistent_earner": {
        "name": "Consistent Earner",
        "description": "Sent 5 invoices in a single week",
        "icon": "📈",
        "criteria": {"type": "invoice_count", "value": 5, "period": "weekly"},
        "points": 100,
    },
    "top_seller": {
        "name": "Top Seller",
        "description": "Collected R1,000 in paid invoices this week",
        "icon": "💰",
        "criteria": {"type": "revenue", "value": 1000, "period": "weekly"},
        "points": 150,
    },
    "on_fire": {
        "name": "On Fire",
        "description": "7 day invoicing streak",
        "icon": "🔥",
        "criteria": {"type": "streak", "value": 7},
        "points": 200,
    },
    "unstoppable": {
        "name": "Unstoppable",
        "description": "30 day invoicing streak",
        "icon": "⚡",
        "criteria": {"type": "streak", "value": 30},
        "points": 500,
    },
    "invoice_master": {
        "name": "Invoice Master",
        "description": "Sent 50 invoices",
        "icon": "🏆",
        "criteria": {"type": "invoice_count", "value": 50, "period": "all_time"},
        "points": 300,
    },
    "speed_demon": {
        "name": "Speed Demon",
        "description": "Sent 10 invoices in one day",
        "icon": "🚀",
        "criteria": {"type": "invoice_count", "value": 10, "period": "daily"},
        "points": 150,
    },
    "relationship_builder": {
        "name": "Relationship Builder",
        "description": "5 repeat customers",
        "icon": "🤝",
        "criteria": {"type": "customer_count", "value": 5},
        "points": 100,
    },
    "early_adopter": {
        "name": "Early Adopter",
        "description": "Joined Link2Pay during the beta",
        "icon": "🌱",
        "criteria": {"type": "special"},
        "points": 100,
    },
}
