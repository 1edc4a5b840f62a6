"""Prompt builders for the discovery, website and outreach-email stages."""

from datetime import datetime, timezone
from typing import Any, Optional

# Placeholder used in outreach emails before the site has been deployed
WEBSITE_LINK_PLACEHOLDER = "[WEBSITE_LINK]"

CANDIDATE_SHAPE = """[
  {
    "name": "Business name",
    "industry": "Food & Beverage | Fashion | Beauty | Crafts | Education | Home Goods | Agriculture | Services",
    "productType": "specific product description",
    "description": "2-3 realistic sentences about this business",
    "location": "City, %(country)s",
    "foundedYear": 2019,
    "employeeCount": "1-5",
    "monthlyRevenue": "$500-$2000",
    "socialMedia": {
      "facebook": "https://facebook.com/pagename",
      "instagram": "https://instagram.com/handle",
      "whatsapp": "+1234567890"
    },
    "contactEmail": "owner@gmail.com",
    "ownerName": "Realistic local name",
    "followers": { "facebook": 1500, "instagram": 900 },
    "products": ["product 1", "product 2", "product 3"],
    "priceRange": "$5-$40",
    "tags": ["handmade", "local"],
    "noWebsiteReason": "Short realistic reason",
    "opportunityScore": 82,
    "languages": ["local language", "English"]
  }
]"""


def discovery_search_queries(country_name: str) -> list[str]:
    """Concrete search hints offered to the model for one country."""
    return [
        f"{country_name} small business facebook page handmade",
        f"{country_name} local shop instagram seller",
        f"{country_name} homemade food clothing crafts facebook",
        f"site:facebook.com {country_name} small business",
    ]


def discovery_system_prompt(country_name: str) -> str:
    return (
        f"You are a business researcher finding real small businesses in {country_name} "
        "that operate only on Facebook/Instagram (no website). Use the search tool to find "
        "actual businesses, then extract structured data. Return ONLY a valid JSON array "
        "at the end."
    )


def discovery_user_prompt(country_name: str) -> str:
    queries = "\n".join(
        f'{i}. "{query}"' for i, query in enumerate(discovery_search_queries(country_name), start=1)
    )
    return f"""Search for real small businesses in {country_name} that operate only on social media (Facebook, Instagram) without a website.

Search for:
{queries}

Find 8-10 real or highly realistic businesses based on what you discover. Then return ONLY this JSON array (no markdown, no explanation):

{CANDIDATE_SHAPE % {"country": country_name}}"""


def discovery_synthesis_prompt(country_name: str) -> str:
    return (
        f"You are a business researcher. Based on the web search results, return ONLY a valid "
        f"JSON array of 8-10 small businesses in {country_name} that operate only on social "
        "media. No markdown, no explanation, just the JSON array starting with [."
    )


WEBSITE_SYSTEM_PROMPT = (
    "You are an elite web designer creating stunning single-file HTML websites. "
    "Return ONLY raw HTML starting with <!DOCTYPE html>. No markdown, no code fences, "
    "no explanation whatsoever."
)


def _join(values: Optional[list[Any]]) -> str:
    return ", ".join(str(v) for v in values or [])


def website_prompt(sme: dict[str, Any], year: Optional[int] = None) -> str:
    """Build the website-generation prompt from an SME profile (camelCase view)."""
    year = year or datetime.now(timezone.utc).year
    social = sme.get("socialMedia") or {}

    return f"""Build a complete, stunning, single-file HTML website for this business:

Business: {sme.get("name")}
Industry: {sme.get("industry")}
Products: {_join(sme.get("products"))}
Description: {sme.get("description")}
Location: {sme.get("location")}
Price Range: {sme.get("priceRange")}
Owner: {sme.get("ownerName")}
Facebook: {social.get("facebook") or "N/A"}
Instagram: {social.get("instagram") or "N/A"}
WhatsApp: {social.get("whatsapp") or "N/A"}
Tags: {_join(sme.get("tags"))}

Requirements:
1. Single HTML file with ALL CSS and JS embedded (no external CSS files)
2. Stunning hero section with gradient background matching the industry
3. About section telling their story
4. Product grid with cards showing name, description, price from range, Buy button
5. Buy button opens a modal order form (name, phone, product, qty); on submit show "Thank you! We'll contact you soon."
6. Social media links section
7. Contact section with location
8. Floating WhatsApp button bottom-right if whatsapp exists
9. Fully mobile responsive
10. Scroll-reveal animations with Intersection Observer
11. Google Fonts for typography (load via @import in style tag)
12. Professional footer with copyright {year}

Make it look like a $5000 professional website. Bold, memorable, unique design."""


EMAIL_SYSTEM_PROMPT = (
    "You are a world-class B2B sales copywriter. Write warm, personalized, non-salesy "
    'outreach emails. Return ONLY valid JSON: {"subject":"...","body":"..."}. No markdown.'
)


def email_prompt(sme: dict[str, Any], deployed_url: Optional[str]) -> str:
    """Build the outreach-email prompt from an SME profile and its current site URL."""
    link = deployed_url or WEBSITE_LINK_PLACEHOLDER
    social = sme.get("socialMedia") or {}
    followers = sme.get("followers") or {}
    active_on = ", ".join(platform for platform, handle in social.items() if handle)

    return f"""Write a personalized outreach email:

Business: {sme.get("name")}
Owner: {sme.get("ownerName")}
Industry: {sme.get("industry")}
Products: {_join(sme.get("products"))}
Location: {sme.get("location")}
Active on: {active_on}
Website we built: {link}
Followers: FB {followers.get("facebook", 0)} | IG {followers.get("instagram", 0)}

Our offer:
- Free professional website (link: {link})
- Option A: Sell through our platform, website FREE, we take 10% per sale
- Option B: Just the website for a small monthly fee
- We don't do logistics

Requirements: subject with curiosity, reference their specific business, mention social success + no website, include the link, explain options briefly, max 220 words, warm human tone.

Return JSON: {{"subject": "...", "body": "..."}}"""
