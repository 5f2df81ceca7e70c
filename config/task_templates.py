# Starter task lists per event type.
# days_before: how many days before the event start the task is due.

TASK_TEMPLATES = {
    "conference": [
        {"title": "Secure venue and sign contract", "category": "venue", "priority": "urgent", "days_before": 120},
        {"title": "Create event budget breakdown", "category": "budget", "priority": "high", "days_before": 110},
        {"title": "Research and contact potential sponsors", "category": "sponsors", "priority": "high", "days_before": 100},
        {"title": "Book catering vendor", "category": "vendors", "priority": "high", "days_before": 75},
        {"title": "Hire AV equipment provider", "category": "vendors", "priority": "medium", "days_before": 60},
        {"title": "Set up registration platform", "category": "registration", "priority": "high", "days_before": 60},
        {"title": "Design marketing materials", "category": "marketing", "priority": "medium", "days_before": 50},
        {"title": "Launch social media campaign", "category": "marketing", "priority": "medium", "days_before": 45},
        {"title": "Confirm speaker lineup", "category": "content", "priority": "high", "days_before": 40},
        {"title": "Arrange transportation for VIPs", "category": "logistics", "priority": "low", "days_before": 14},
        {"title": "Obtain necessary permits", "category": "legal", "priority": "medium", "days_before": 30},
        {"title": "Hire event photographer", "category": "vendors", "priority": "low", "days_before": 21},
    ],
    "workshop": [
        {"title": "Book workshop venue", "category": "venue", "priority": "urgent", "days_before": 45},
        {"title": "Finalize workshop curriculum", "category": "content", "priority": "high", "days_before": 30},
        {"title": "Prepare workshop materials", "category": "content", "priority": "high", "days_before": 14},
        {"title": "Set up registration", "category": "registration", "priority": "medium", "days_before": 30},
        {"title": "Arrange catering for breaks", "category": "vendors", "priority": "medium", "days_before": 14},
        {"title": "Promote workshop on social media", "category": "marketing", "priority": "medium", "days_before": 21},
        {"title": "Test all equipment and tech", "category": "logistics", "priority": "high", "days_before": 2},
    ],
    "hackathon": [
        {"title": "Secure hackathon venue", "category": "venue", "priority": "urgent", "days_before": 90},
        {"title": "Reach out to tech sponsors", "category": "sponsors", "priority": "high", "days_before": 75},
        {"title": "Define hackathon challenges/tracks", "category": "content", "priority": "high", "days_before": 45},
        {"title": "Set up judging criteria and panel", "category": "content", "priority": "high", "days_before": 30},
        {"title": "Arrange prizes and swag", "category": "sponsors", "priority": "medium", "days_before": 21},
        {"title": "Organize food and refreshments", "category": "vendors", "priority": "high", "days_before": 14},
        {"title": "Set up WiFi and power stations", "category": "logistics", "priority": "urgent", "days_before": 3},
        {"title": "Create participant registration", "category": "registration", "priority": "high", "days_before": 60},
        {"title": "Plan mentorship program", "category": "content", "priority": "medium", "days_before": 30},
        {"title": "Prepare demo/presentation setup", "category": "logistics", "priority": "medium", "days_before": 2},
    ],
    "networking": [
        {"title": "Book networking event venue", "category": "venue", "priority": "urgent", "days_before": 45},
        {"title": "Arrange food and drinks", "category": "vendors", "priority": "high", "days_before": 21},
        {"title": "Create guest list and invitations", "category": "registration", "priority": "high", "days_before": 30},
        {"title": "Design name badges", "category": "marketing", "priority": "medium", "days_before": 7},
        {"title": "Plan icebreaker activities", "category": "content", "priority": "medium", "days_before": 10},
        {"title": "Hire DJ or background music", "category": "vendors", "priority": "low", "days_before": 21},
    ],
}

DEFAULT_TEMPLATE = "conference"
