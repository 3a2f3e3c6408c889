"""
URL Scraper Service

Fetches an external recipe page and extracts its content. Pages that embed
schema.org Recipe JSON-LD come back as a normalized recipe dict
("structured"); anything else comes back as cleaned page text for the AI
parser ("unstructured").
"""

import json
import logging
import os
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.dammit import EncodingDetector

from constants import MAX_PAGE_CONTENT, MAX_RESPONSE_SIZE, MAX_SCRAPED_TAGS
from utils.url_validator import safe_fetch, validate_url, FetchError
from utils.image_handler import save_image, ImageValidationError

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ('text/html', 'application/xhtml', 'text/plain')
IMAGE_CONTENT_TYPES = ('image/',)

_QUANTITY = r'([\d./]+(?:\s*-\s*[\d./]+)?)'

# Tried in order, first match wins
INGREDIENT_PATTERNS = [
    # "2 cups flour"
    re.compile(
        _QUANTITY + r'\s+(cups?|tbsp?|tsp?|tablespoons?|teaspoons?|oz|ounces?|lbs?|pounds?|g|grams?|kg|ml|'
        r'liters?|quarts?|pints?|gallons?|pieces?|slices?|cloves?|cans?|packages?|sticks?|bunche?s?|'
        r'heads?|sprigs?|pinche?s?|dashes?)\s+(.+)$',
        re.IGNORECASE
    ),
    # "3 large eggs"
    re.compile(_QUANTITY + r'\s+(small|medium|large|extra-large|whole)\s+(.+)$', re.IGNORECASE),
    # "2 bananas"
    re.compile(_QUANTITY + r'\s+(.+)$', re.IGNORECASE),
]

BOILERPLATE_SELECTOR = (
    'script, style, nav, header, footer, aside, .comments, .sidebar, '
    '.advertisement, .ad, [class*="social"], [class*="share"]'
)

CONTENT_SELECTORS = [
    'article',
    '[class*="recipe"]',
    '[class*="content"]',
    'main',
    '.post',
    '.entry',
]

_WHITESPACE = re.compile(r'\s+')
_DIGITS = re.compile(r'\d+')
_CHARSET = re.compile(r"charset=[\"']?([\w.:-]+)", re.IGNORECASE)


def parse_ingredient_string(text):
    """
    Split an ingredient line into quantity, unit and name.

    Lines with a quantity but no recognised unit get the unit 'whole';
    lines without a leading quantity are returned as a bare name.
    """
    if not text or not isinstance(text, str):
        return {'name': str(text or ''), 'quantity': None, 'unit': None}

    line = text.strip()
    for pattern in INGREDIENT_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        groups = match.groups()
        if len(groups) == 3:
            return {'quantity': groups[0], 'unit': groups[1].lower(), 'name': groups[2].strip()}
        return {'quantity': groups[0], 'unit': 'whole', 'name': groups[1].strip()}

    return {'name': line, 'quantity': None, 'unit': None}


def parse_ingredients(raw):
    """Yield parsed ingredients one at a time."""
    if not raw:
        return
    if not isinstance(raw, list):
        raw = [raw]
    for line in raw:
        yield parse_ingredient_string(line)


def _step_text(step):
    if isinstance(step, dict):
        return step.get('text') or ''
    return step


def render_instructions(instructions):
    """Flatten schema.org recipeInstructions into numbered text."""
    if not instructions:
        return ''
    if isinstance(instructions, str):
        return instructions
    if not isinstance(instructions, list):
        return ''

    blocks = []
    for index, step in enumerate(instructions, 1):
        if isinstance(step, str):
            blocks.append(f'{index}. {step}')
        elif not isinstance(step, dict):
            continue
        elif step.get('text'):
            blocks.append(f"{index}. {step['text']}")
        elif step.get('@type') == 'HowToSection':
            section_steps = step.get('itemListElement') or []
            lines = [f'{i}. {_step_text(s)}' for i, s in enumerate(section_steps, 1)]
            blocks.append(f"**{step.get('name') or 'Section'}**\n" + '\n'.join(lines))
    return '\n\n'.join(block for block in blocks if block)


def _first(value):
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _person_name(value):
    value = _first(value)
    if isinstance(value, dict):
        return value.get('name') or None
    return None


def extract_tags(recipe):
    """Merge keywords and recipeCuisine, capped at MAX_SCRAPED_TAGS."""
    tags = []
    keywords = recipe.get('keywords')
    if isinstance(keywords, str):
        tags = [t.strip() for t in keywords.split(',') if t.strip()]
    elif isinstance(keywords, list):
        tags = list(keywords)

    cuisine = recipe.get('recipeCuisine')
    if cuisine:
        tags.extend(cuisine if isinstance(cuisine, list) else [cuisine])

    return tags[:MAX_SCRAPED_TAGS]


def extract_servings(recipe_yield):
    recipe_yield = _first(recipe_yield)
    if recipe_yield is None:
        return None
    match = _DIGITS.search(str(recipe_yield))
    return int(match.group()) if match else None


def extract_image_url(image):
    """Pull a URL out of the string / list / ImageObject forms of schema.org image."""
    if not image:
        return None
    if isinstance(image, str):
        return image
    if isinstance(image, list):
        return extract_image_url(image[0])
    if isinstance(image, dict):
        return image.get('url') or image.get('@id') or None
    return None


def normalize_structured_recipe(recipe):
    """Map a schema.org Recipe object onto our recipe fields."""
    return {
        'title': recipe.get('name') or 'Untitled Recipe',
        'source': _person_name(recipe.get('author')) or _person_name(recipe.get('publisher')),
        'category': _first(recipe.get('recipeCategory')) or None,
        'description': recipe.get('description') or None,
        'ingredients': list(parse_ingredients(recipe.get('recipeIngredient'))),
        'instructions': render_instructions(recipe.get('recipeInstructions')),
        'tags': extract_tags(recipe),
        'servings': extract_servings(recipe.get('recipeYield')),
        'prep_time': recipe.get('prepTime') or None,
        'cook_time': recipe.get('cookTime') or None,
        'total_time': recipe.get('totalTime') or None,
        'image': extract_image_url(recipe.get('image')),
    }


def _is_recipe(item):
    if not isinstance(item, dict):
        return False
    kind = item.get('@type')
    return kind == 'Recipe' or (isinstance(kind, list) and 'Recipe' in kind)


def _find_recipe(data):
    if isinstance(data, list):
        return next((item for item in data if _is_recipe(item)), None)
    if isinstance(data, dict):
        if isinstance(data.get('@graph'), list):
            return _find_recipe(data['@graph'])
        if _is_recipe(data):
            return data
    return None


def extract_json_ld(soup):
    """Return the first normalized JSON-LD Recipe on the page, or None."""
    for script in soup.find_all('script', type='application/ld+json'):
        content = script.string or script.get_text()
        if not content or not content.strip():
            continue
        try:
            data = json.loads(content)
        except ValueError:
            continue

        recipe = _find_recipe(data)
        if recipe is not None:
            return normalize_structured_recipe(recipe)
    return None


def _text(element):
    return element.get_text(' ').strip() if element is not None else ''


def extract_page_content(soup, hostname):
    """Strip page chrome and return {title, content, hostname} for AI parsing."""
    for node in soup.select(BOILERPLATE_SELECTOR):
        node.decompose()

    title = _text(soup.find('h1')) or _text(soup.find('title')) or 'Unknown Recipe'

    main_content = ''
    for selector in CONTENT_SELECTORS:
        text = _text(soup.select_one(selector))
        if len(text) > 200:
            main_content = text
            break

    if not main_content:
        main_content = _text(soup.body) or soup.get_text(' ').strip()

    main_content = _WHITESPACE.sub(' ', main_content)[:MAX_PAGE_CONTENT]

    return {
        'title': _WHITESPACE.sub(' ', title),
        'content': main_content,
        'hostname': hostname,
    }


def decode_page(response):
    """
    Decode a fetched page as text.

    Uses the charset from the Content-Type header, then a <meta charset>
    declaration, then UTF-8. requests' own ISO-8859-1 default for text/*
    responses without a charset is never applied.
    """
    content = response.content or b''
    match = _CHARSET.search(response.headers.get('content-type', ''))
    encoding = match.group(1) if match else EncodingDetector.find_declared_encoding(content, is_html=True)
    try:
        return content.decode(encoding or 'utf-8', errors='replace')
    except LookupError:
        return content.decode('utf-8', errors='replace')


def scrape(url):
    """
    Fetch a recipe page and extract its recipe.

    Returns:
        dict with type ('structured' or 'unstructured'), source (final URL),
        hostname and data

    Raises:
        FetchError: Subclass describing why the page could not be fetched
    """
    validate_url(url)

    response = safe_fetch(url, allowed_types=HTML_CONTENT_TYPES)
    final_url = response.url or url
    hostname = urlparse(final_url).hostname

    soup = BeautifulSoup(decode_page(response), 'html.parser')

    structured = extract_json_ld(soup)
    if structured:
        logger.info('Found structured recipe data at %s', final_url)
        return {'type': 'structured', 'source': final_url, 'hostname': hostname, 'data': structured}

    logger.info('No structured recipe data at %s, using page text', final_url)
    return {
        'type': 'unstructured',
        'source': final_url,
        'hostname': hostname,
        'data': extract_page_content(soup, hostname),
    }


def download_image(url, dest_dir):
    """
    Fetch an image through the SSRF guard and store it re-encoded.

    Returns:
        save_image() dict plus original_name, or None on any failure
    """
    try:
        response = safe_fetch(url, allowed_types=IMAGE_CONTENT_TYPES, max_size=MAX_RESPONSE_SIZE)
        stored = save_image(response.content, dest_dir, prefix='import')
    except (FetchError, ImageValidationError) as e:
        logger.warning('Could not download recipe image %s: %s', url, e)
        return None

    stored['original_name'] = os.path.basename(urlparse(url).path) or stored['filename']
    return stored
