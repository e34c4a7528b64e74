"""
countries.py — Country Representation Mapping

The checkout form and the payment gateway identify countries by their
two-letter ISO code, while the account and order services store the display
name. Both conversions are total: unmapped input falls back to a default.
"""

DEFAULT_COUNTRY_CODE = "EG"

SUPPORTED_COUNTRIES = {
    "EG": "Egypt", "US": "United States", "GB": "United Kingdom", "CA": "Canada", "AU": "Australia",
    "DE": "Germany", "FR": "France", "IT": "Italy", "ES": "Spain", "NL": "Netherlands", "BE": "Belgium",
    "CH": "Switzerland", "AT": "Austria", "SE": "Sweden", "NO": "Norway", "DK": "Denmark", "FI": "Finland",
    "IE": "Ireland", "PT": "Portugal", "GR": "Greece", "PL": "Poland", "CZ": "Czech Republic", "HU": "Hungary",
    "SK": "Slovakia", "SI": "Slovenia", "HR": "Croatia", "RO": "Romania", "BG": "Bulgaria", "LT": "Lithuania",
    "LV": "Latvia", "EE": "Estonia", "MT": "Malta", "CY": "Cyprus", "LU": "Luxembourg", "JP": "Japan",
    "KR": "South Korea", "CN": "China", "IN": "India", "SG": "Singapore", "MY": "Malaysia", "TH": "Thailand",
    "ID": "Indonesia", "PH": "Philippines", "VN": "Vietnam", "BR": "Brazil", "MX": "Mexico", "AR": "Argentina",
    "CL": "Chile", "CO": "Colombia", "PE": "Peru", "ZA": "South Africa", "NG": "Nigeria", "KE": "Kenya",
    "GH": "Ghana", "MA": "Morocco", "TN": "Tunisia", "DZ": "Algeria", "LY": "Libya", "SD": "Sudan",
    "AE": "United Arab Emirates", "SA": "Saudi Arabia", "KW": "Kuwait", "QA": "Qatar", "OM": "Oman",
    "BH": "Bahrain", "JO": "Jordan", "LB": "Lebanon", "SY": "Syria", "IQ": "Iraq", "IR": "Iran", "TR": "Turkey",
    "IL": "Israel", "PS": "Palestine",
}

_NAME_TO_CODE = {name.lower(): code for code, name in SUPPORTED_COUNTRIES.items()}


def name_to_code(value):
    """
    Converts a display name (or an already valid code) to a two-letter code.

    Args:
        value (str | None): Country name in any case, or a two-letter code.

    Returns:
        str: The matching code, DEFAULT_COUNTRY_CODE if the input is empty or unknown.
    """
    if not value:
        return DEFAULT_COUNTRY_CODE
    value = value.strip()
    if len(value) == 2 and value.upper() in SUPPORTED_COUNTRIES:
        return value.upper()
    return _NAME_TO_CODE.get(value.lower(), DEFAULT_COUNTRY_CODE)


def code_to_name(code):
    """
    Converts a two-letter code to its display name.

    Unknown codes are returned unchanged so that a name already in display
    form passes through.
    """
    if not code:
        return ""
    return SUPPORTED_COUNTRIES.get(code.strip().upper(), code)
