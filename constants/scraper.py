"""
Scraper Constants

Limits and identification used when fetching external recipe pages.
"""

# Request timeout in seconds
REQUEST_TIMEOUT = 15

# Maximum response size (5MB is plenty for any recipe page)
MAX_RESPONSE_SIZE = 5 * 1024 * 1024

# Maximum number of redirects to follow
MAX_REDIRECTS = 5

# Max characters of page text handed to the AI parser
MAX_PAGE_CONTENT = 15000

# Tags kept from keywords + cuisine
MAX_SCRAPED_TAGS = 10

USER_AGENT = 'Mozilla/5.0 (compatible; MomsRecipesBot/1.0; +https://moms-recipes.tachyonfuture.com)'

# Hostnames that are never fetched (cloud metadata, loopback)
BLOCKED_HOSTNAMES = {
    'localhost',
    'metadata.google.internal',
    'metadata',
    '169.254.169.254',
}
