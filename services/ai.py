"""
AI Service

Thin HTTP client for the configured AI provider (Anthropic, OpenAI or
Google Gemini), used to turn free text and recipe web pages into
structured recipes and to estimate calories. The provider, model and API
key come from the settings service; an environment key such as
ANTHROPIC_API_KEY is enough to enable the default provider.
"""

import json
import logging
import re

import requests

from constants import AI_PROVIDERS
from services import settings

logger = logging.getLogger(__name__)

ANTHROPIC_URL = 'https://api.anthropic.com/v1/messages'
ANTHROPIC_VERSION = '2023-06-01'
OPENAI_URL = 'https://api.openai.com/v1/chat/completions'
GOOGLE_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'
MAX_TOKENS = 4096
TIMEOUT = 60

_CODE_FENCE = re.compile(r'^```(?:json)?\s*\n?(.*?)\n?```$', re.DOTALL)


class AIError(Exception):
    """Raised when the AI call fails or returns something unusable."""
    pass


class AIUnavailableError(AIError):
    """Raised when no API key is configured."""
    pass


RECIPE_JSON_SHAPE = """{
  "title": "Recipe name",
  "source": "Where the recipe came from (cookbook, website, person, etc.)",
  "category": "Recipe category (e.g., Appetizers, Main Courses, Desserts, Snacks, etc.)",
  "description": "Brief 1-2 sentence description of the recipe",
  "ingredients": [
    {
      "name": "ingredient name",
      "quantity": "amount (e.g., '2', '1/2', '1.5')",
      "unit": "unit of measurement (e.g., 'cups', 'tbsp', 'grams', 'whole')"
    }
  ],
  "instructions": "Step by step cooking instructions as a single text block",
  "tags": ["tag1", "tag2"],
  "servings": <number or null>
}"""

PARSE_TEXT_PROMPT = f"""You are a recipe parsing assistant. Your job is to extract structured recipe information from unstructured text.

IMPORTANT: You must respond with ONLY valid JSON. No markdown code blocks, no explanations, just pure JSON.

The JSON structure should be:
{RECIPE_JSON_SHAPE}

Guidelines:
- Extract title from the recipe (often the first line or clearly labeled)
- Identify the source (cookbook name, website, "Mom's recipe", etc.)
- Extract or infer category (Appetizers, Main Courses, Desserts, Snacks, Soups & Salads, etc.)
- Parse ingredients into name, quantity and unit
- Generate 3-5 relevant tags
- If any field is unclear or missing, use reasonable defaults or null"""

PARSE_PAGE_PROMPT = f"""You are a recipe parsing assistant. Your job is to extract structured recipe information from web page content.

IMPORTANT: You must respond with ONLY valid JSON. No markdown code blocks, no explanations, just pure JSON.

The JSON structure should be:
{RECIPE_JSON_SHAPE}

Guidelines:
- Set source to the website name (from hostname) or author if mentioned
- Extract and format instructions as numbered steps
- Generate 3-5 relevant tags based on meal type, cuisine, main ingredients, cooking method
- Ignore ads, comments, navigation, and non-recipe content
- If the page doesn't appear to contain a recipe, return: {{"error": "No recipe found on this page"}}"""

CALORIES_PROMPT = """You are a nutrition expert. Estimate the total calories for a recipe based on its ingredients.

IMPORTANT: Respond with ONLY valid JSON in this exact format:
{
  "estimated_calories": <number>,
  "calories_confidence": "<low|medium|high>",
  "reasoning": "Brief explanation of your estimation"
}

Guidelines:
- estimated_calories should be per serving (or total if servings unknown)
- Be conservative in your estimates"""


def _anthropic_request(api_key, model, user_message, system_prompt):
    payload = {
        'model': model,
        'max_tokens': MAX_TOKENS,
        'messages': [{'role': 'user', 'content': user_message}],
    }
    if system_prompt:
        payload['system'] = system_prompt
    headers = {
        'x-api-key': api_key,
        'Content-Type': 'application/json',
        'anthropic-version': ANTHROPIC_VERSION,
    }
    return ANTHROPIC_URL, headers, payload


def _anthropic_text(data):
    content = data.get('content') or []
    return content[0].get('text') if content else None


def _openai_request(api_key, model, user_message, system_prompt):
    messages = []
    if system_prompt:
        messages.append({'role': 'system', 'content': system_prompt})
    messages.append({'role': 'user', 'content': user_message})
    headers = {'Authorization': f'Bearer {api_key}', 'Content-Type': 'application/json'}
    return OPENAI_URL, headers, {'model': model, 'messages': messages, 'max_tokens': MAX_TOKENS}


def _openai_text(data):
    choices = data.get('choices') or []
    return choices[0].get('message', {}).get('content') if choices else None


def _google_request(api_key, model, user_message, system_prompt):
    # Gemini takes the instructions inline
    prompt = f'{system_prompt}\n\n---\n\n{user_message}' if system_prompt else user_message
    headers = {'x-goog-api-key': api_key, 'Content-Type': 'application/json'}
    return GOOGLE_URL.format(model=model), headers, {'contents': [{'parts': [{'text': prompt}]}]}


def _google_text(data):
    candidates = data.get('candidates') or []
    if not candidates:
        return None
    parts = candidates[0].get('content', {}).get('parts') or []
    return ''.join(part.get('text', '') for part in parts) or None


_PROVIDER_CLIENTS = {
    'anthropic': (_anthropic_request, _anthropic_text),
    'openai': (_openai_request, _openai_text),
    'google': (_google_request, _google_text),
}


def send_message(user_message, system_prompt=''):
    """
    Send one user message to the configured provider and return the reply text.

    Raises:
        AIUnavailableError: If the provider has no API key
        AIError: For HTTP or transport failures
    """
    provider = settings.current_provider()
    provider_name = AI_PROVIDERS[provider]['name']
    api_key = settings.active_api_key(provider)
    if not api_key:
        raise AIUnavailableError(
            f"AI is not configured. Set {AI_PROVIDERS[provider]['env_key']} "
            'or store an API key in the AI settings.'
        )
    model = settings.current_model(provider)
    build_request, read_text = _PROVIDER_CLIENTS[provider]
    url, headers, payload = build_request(api_key, model, user_message, system_prompt)

    try:
        response = requests.post(url, headers=headers, json=payload, timeout=TIMEOUT)
    except requests.RequestException as e:
        raise AIError(f'AI request failed: {e}')

    if response.status_code in (401, 403):
        raise AIError(f'Invalid API key for {provider_name}. Please check your API key configuration.')
    if response.status_code == 404:
        raise AIError(f'Invalid model "{model}". Please check available models for {provider_name}.')
    if not response.ok:
        raise AIError(f'AI error ({provider_name}): HTTP {response.status_code}')

    try:
        text = read_text(response.json())
    except ValueError:
        raise AIError(f'AI error ({provider_name}): response was not JSON')
    if not text:
        raise AIError('No response from AI')
    return text


def check_connection():
    """
    Send a fixed prompt with the current settings.

    Returns:
        dict with provider and model display names and the reply
    """
    config = settings.get_ai_config()
    if not config['hasApiKey']:
        raise AIUnavailableError('No API key configured')
    reply = send_message(
        'Respond with exactly: "Connection successful"',
        'You are a test assistant. Follow instructions exactly.',
    )
    return {'provider': config['providerName'], 'model': config['modelName'], 'response': reply.strip()}


def parse_json_response(text, context):
    """Decode a JSON reply, unwrapping a markdown code fence if present."""
    text = (text or '').strip()
    match = _CODE_FENCE.match(text)
    if match:
        text = match.group(1).strip()
    try:
        return json.loads(text)
    except ValueError:
        raise AIError(f'{context} returned invalid JSON')


def _recipe_defaults(parsed):
    if not isinstance(parsed, dict):
        raise AIError('Recipe parsing returned invalid JSON')
    if parsed.get('title') is None:
        parsed['title'] = 'Untitled Recipe'
    if not isinstance(parsed.get('ingredients'), list):
        parsed['ingredients'] = []
    if not parsed.get('instructions'):
        parsed['instructions'] = ''
    if not isinstance(parsed.get('tags'), list):
        parsed['tags'] = []
    return parsed


def parse_recipe_text(recipe_text):
    """Structure free text (e.g. from a PDF) into a recipe dict."""
    reply = send_message(f'Parse this recipe and return structured JSON:\n\n{recipe_text}', PARSE_TEXT_PROMPT)
    return _recipe_defaults(parse_json_response(reply, 'Recipe parsing'))


def parse_recipe_from_web_page(page, source_url):
    """
    Structure scraped page text into a recipe dict.

    Raises:
        AIError: 'No recipe found on this page' when the model finds none
    """
    message = (
        'Extract the recipe from this web page content.\n\n'
        f'Source URL: {source_url}\n'
        f"Website: {page['hostname']}\n"
        f"Page Title: {page['title']}\n\n"
        f"Page Content:\n{page['content']}"
    )
    parsed = parse_json_response(send_message(message, PARSE_PAGE_PROMPT), 'Web recipe parsing')
    if isinstance(parsed, dict) and parsed.get('error'):
        raise AIError(parsed['error'])

    parsed = _recipe_defaults(parsed)
    if not parsed.get('title') or parsed['title'] == 'Untitled Recipe':
        parsed['title'] = page.get('title') or 'Untitled Recipe'
    if not parsed.get('source'):
        parsed['source'] = page['hostname']
    parsed.setdefault('category', None)
    parsed.setdefault('description', None)
    return parsed


def estimate_calories(recipe):
    """
    Ask for a calorie estimate for a Recipe.

    Returns:
        dict with estimated_calories (int), calories_confidence and reasoning
    """
    ingredient_list = '\n'.join(
        ' '.join(part for part in (i.quantity, i.unit, i.name) if part)
        for i in recipe.ingredients
    )
    message = (
        'Estimate calories for this recipe:\n\n'
        f'Title: {recipe.title}\n'
        f"Servings: {recipe.servings or 'unknown'}\n\n"
        f'Ingredients:\n{ingredient_list}'
    )
    parsed = parse_json_response(send_message(message, CALORIES_PROMPT), 'Calorie estimation')

    try:
        calories = int(round(float(parsed['estimated_calories'])))
    except (KeyError, TypeError, ValueError):
        raise AIError('Calorie estimation returned no usable number')

    confidence = str(parsed.get('calories_confidence') or 'low').lower()
    if confidence not in ('low', 'medium', 'high'):
        confidence = 'low'

    logger.info('Estimated %d calories for recipe %s (%s confidence)', calories, recipe.id, confidence)
    return {
        'estimated_calories': max(calories, 0),
        'calories_confidence': confidence,
        'reasoning': parsed.get('reasoning'),
    }
