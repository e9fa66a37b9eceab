"""Interface labels in English and Tamil."""

SUPPORTED_LANGUAGES = ('en', 'ta')
DEFAULT_LANGUAGE = 'en'

LABELS = {
    'en': {
        'nav.dashboard': 'Dashboard',
        'nav.bookings': 'Bookings',
        'nav.fleet': 'Fleet',
        'nav.schedule': 'Scheduler',
        'nav.accounts': 'Accounts',
        'nav.tours': 'Tours',
        'nav.settings': 'Settings',
        'nav.profile': 'Profile',
        'nav.search': 'Find a bus',
        'nav.login': 'Login',
        'nav.logout': 'Logout',
        'calendar.booked': 'Booked',
        'calendar.previous': 'Previous month',
        'calendar.next': 'Next month',
        'common.retry': 'Retry',
    },
    'ta': {
        'nav.dashboard': 'முகப்பு',
        'nav.bookings': 'முன்பதிவுகள்',
        'nav.fleet': 'வாகனங்கள்',
        'nav.schedule': 'அட்டவணை',
        'nav.accounts': 'கணக்குகள்',
        'nav.tours': 'சுற்றுலாக்கள்',
        'nav.settings': 'அமைப்புகள்',
        'nav.profile': 'சுயவிவரம்',
        'nav.search': 'பேருந்து தேடல்',
        'nav.login': 'உள்நுழை',
        'nav.logout': 'வெளியேறு',
        'calendar.booked': 'பதிவு',
        'calendar.previous': 'முந்தைய மாதம்',
        'calendar.next': 'அடுத்த மாதம்',
        'common.retry': 'மீண்டும் முயல்க',
    },
}


def normalise_language(value) -> str:
    return value if value in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def translate(key: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Look up a label, falling back to English and then to the key itself."""
    return LABELS.get(normalise_language(language), {}).get(key) or LABELS[DEFAULT_LANGUAGE].get(key, key)
