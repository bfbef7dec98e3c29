"""Prompt text for every knowledge-retrieval task.

Each task has a system instruction string and a user-prompt builder. Builders
are plain functions of the entity arguments; they return the full user
message including the JSON shape the parser expects back.
"""

import json
from datetime import date
from typing import Any

JSON_ONLY = "Return ONLY valid JSON. No markdown blocks, no explanations, no comments."
NO_FABRICATION = 'Use real information only. Return null or "Not disclosed" if data unavailable.'
DATE_FORMAT = "Use YYYY-MM-DD format for dates."
NUMERIC_FORMAT = "Use valid JSON numbers without commas (e.g., 3210.50 not 3,210.50)."


def _requirements(items: list[str]) -> str:
    return "REQUIREMENTS:\n" + "\n".join(f"- {item}" for item in items)


def _shape(example: Any) -> str:
    return json.dumps(example, indent=2)


def _today() -> str:
    return date.today().isoformat()


# -- Company ----------------------------------------------------------------

SYSTEMS: dict[str, str] = {
    "company_domain": f"You are a domain specialist. {JSON_ONLY}",
    "financial_snapshot": (
        f"Financial data specialist. Report CURRENT market data. Search Yahoo Finance, "
        f"Crunchbase, press releases. {JSON_ONLY} {NO_FABRICATION}"
    ),
    "private_financials": (
        f"Private company funding analyst. Cite Crunchbase, PitchBook, TechCrunch or "
        f"press releases for every round. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "recent_news": (
        f"Business news analyst. Search news sites, company blogs, LinkedIn, press "
        f"releases. Last 6 months. {JSON_ONLY}"
    ),
    "growth_events": (
        f"Corporate intelligence analyst. Find significant events from past 12 months. {JSON_ONLY}"
    ),
    "company_challenges": (
        f"Business analyst. Report facts only, no ratings or scores. Numbers and dates "
        f"required. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "industry_context": (
        f"Industry analyst. Describe the company's market, products, customers and "
        f"competitors. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "tech_stack": (
        f"Technology analyst. Find confirmed tech from jobs, blogs, GitHub, StackShare, "
        f"partnerships. [] if none. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "priority_contacts": (
        f"Executive research specialist. Find C/VP-level leaders. NO LinkedIn URLs or "
        f"citations. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "organization_profile": (
        f"Company profile researcher. Report headcount, industry and headquarters from "
        f"LinkedIn or the company website. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "company_intelligence": (
        f"Sales intelligence analyst. Find actionable insights from last 3 months. "
        f"{NO_FABRICATION} {JSON_ONLY}"
    ),
    "company_activity": (
        f"Business intelligence analyst. Find recent events from last 6 months. {JSON_ONLY}"
    ),
    # -- Person -------------------------------------------------------------
    "person_basic_info": (
        f"Professional background researcher. Verify current role and seniority. "
        f"{NO_FABRICATION} {JSON_ONLY}"
    ),
    "person_media_presence": (
        f"Media researcher. Find press features, speaking engagements, awards and "
        f"published content. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "person_social_activity": (
        f"Social media analyst. Find recent public posts with dates and topics. "
        f"{NO_FABRICATION} {JSON_ONLY}"
    ),
    "person_quoted_challenges": (
        f"Research analyst. Find challenges this person has publicly described, with "
        f"direct quotes and sources. {NO_FABRICATION} {JSON_ONLY}"
    ),
    "person_risk_signals": (
        f"Due diligence analyst. Report verifiable facts that affect outreach: role "
        f"changes, departures, controversies. {NO_FABRICATION} {JSON_ONLY}"
    ),
}


def company_domain(company_name: str) -> str:
    return (
        f'Find the official website domain for "{company_name}".\n\n'
        "Return only the domain (e.g., \"anthropic.com\") without protocols, www, or "
        "paths. Use lowercase.\n\n"
        f"{JSON_ONLY}\n\n"
        '{"domain": "example.com"}'
    )


def financial_snapshot(company_name: str) -> str:
    example = {
        "isPublic": True,
        "isSubsidiary": False,
        "parentCompany": None,
        "symbol": "TRV",
        "exchange": "NYSE",
        "price": 254.85,
        "ytd": 12.5,
        "yoy": 11.8,
        "marketCap": "60.7B",
        "currency": "USD",
        "industry": "Insurance",
        "employeeCount": "30,800",
        "performanceTrend": {
            "direction": "upward",
            "momentum": "accelerating",
            "volatility": "moderate",
            "context": "Outperforming sector average by 15%",
        },
        "dynamicFinancials": [{"label": "Annual Revenue (TTM)", "value": "$46.4B"}],
        "financialSummary": {
            "priceTrajectory": {"direction": "up", "percentage": 12.5},
            "sentiment": "positive",
            "sentimentReason": "Revenue growth ahead of guidance",
            "lastUpdated": _today(),
            "sources": ["Yahoo Finance"],
        },
    }
    return (
        f'Get financial data for "{company_name}" as of {_today()}.\n\n'
        "If the company is a subsidiary, report the PARENT company's stock data and set "
        "isSubsidiary/parentCompany.\n"
        "PUBLIC: market cap, revenue, profit, growth, stock performance.\n"
        "PRIVATE: set isPublic false; employee count and industry ONLY (funding is "
        "fetched separately).\n"
        'FORMAT: marketCap "94B", percentages as numbers, employees "5,200".\n'
        'Never include "Not disclosed", "N/A" or "null" values in dynamicFinancials; omit '
        "the metric instead.\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"{NUMERIC_FORMAT}\n{JSON_ONLY}"
    )


def private_financials(company_name: str) -> str:
    example = {
        "fundingRounds": [
            {
                "round": "Series B",
                "amount": "$40M",
                "date": "2024-05-15",
                "investors": ["Sequoia Capital"],
                "leadInvestor": "Sequoia Capital",
                "source": "TechCrunch",
                "url": "https://techcrunch.com/2024/05/15/example",
            }
        ],
        "totalFunding": "$65M",
        "latestValuation": "$400M",
        "revenueEstimate": "Not disclosed",
        "fundingStage": "Series B",
        "growthMetrics": {
            "revenueGrowth": "Not disclosed",
            "employeeGrowth": "2x in past year",
            "customerGrowth": "Not disclosed",
        },
        "lastUpdated": _today(),
        "sources": ["Crunchbase", "TechCrunch"],
    }
    return (
        f'Find verified funding history for the private company "{company_name}".\n\n'
        "Every funding round MUST cite a specific publication and a full article URL. "
        "Do not estimate amounts. Do not list rounds dated in the future.\n"
        'If nothing can be verified, return fundingRounds null and "Not disclosed" for '
        "every amount.\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"{DATE_FORMAT}\n{JSON_ONLY}"
    )


def recent_news(company_name: str) -> str:
    example = [
        {
            "title": "Company Announces Strategic Partnership with Microsoft",
            "summary": "Partnered with Microsoft to integrate AI capabilities into Azure.",
            "date": "2025-08-15",
            "sentiment": "positive",
            "category": "partnership",
            "source": "Company Blog",
            "url": "https://...",
        }
    ]
    return (
        f'Find 4-8 news items for "{company_name}" (last 6 months). '
        "Priority: Funding > Partnerships > Products > Financials > Leadership\n\n"
        f"Return JSON array:\n{_shape(example)}\n\n"
        "Sentiment: positive, negative, or neutral.\n"
        "Category: funding, partnership, product_launch, financial_results, "
        "leadership_change, market_expansion, customer_win, layoffs, recognition\n\n"
        + _requirements([
            "Real dates (YYYY-MM-DD) and URLs",
            "Summary: 1-2 sentences, focus on business impact",
            "Empty array ONLY if absolutely no news found",
        ])
        + f"\n\n{JSON_ONLY}"
    )


def growth_events(company_name: str) -> str:
    example = [
        {
            "type": "funding",
            "activity": "Series A funding round led by Intel Capital",
            "amount": "$19M",
            "date": "2025-02-06",
        }
    ]
    return (
        f'Find 5-10 growth events for "{company_name}" (past 12 months).\n\n'
        "Include: funding rounds, partnerships, customer wins, acquisitions, product "
        "launches, expansions, executive appointments, layoffs.\n\n"
        f"Return JSON array:\n{_shape(example)}\n\n"
        "Types: funding, layoffs, acquisition, product-launch, expansion, hiring, "
        "partnership, leadership\n\n"
        + _requirements([
            "Verifiable dates (YYYY-MM-DD)",
            "Order by date (most recent first)",
            "Empty array only if no events found",
        ])
        + f"\n\n{JSON_ONLY}"
    )


def company_challenges(company_name: str) -> str:
    example = {
        "isPrivateCompany": False,
        "summary": "Two rounds of layoffs in 2025 and a delayed product launch.",
        "negativeNewsSummary": "Revenue guidance cut in Q2.",
        "earningsCallNegativeNews": {"summary": None, "url": None},
        "layoffNews": {
            "hasLayoffs": True,
            "summary": "Cut 8% of staff in March 2025",
            "layoffEvents": [
                {
                    "date": "2025-03-12",
                    "employeesAffected": "400",
                    "departments": ["Sales"],
                    "source": "Reuters",
                    "url": "https://...",
                }
            ],
        },
        "challenges": [
            {
                "category": "financial",
                "description": "Missed Q2 revenue guidance by 6%",
                "date": "2025-07-30",
                "source": "Bloomberg",
                "url": "https://...",
            }
        ],
        "timelineOfEvents": [{"date": "2025-03-12", "event": "Layoffs announced"}],
    }
    return (
        f'Find documented challenges for "{company_name}" in the last 12 months: '
        "layoffs, missed earnings, lawsuits, regulatory actions, executive departures.\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        'If nothing is found, return summary "No significant challenges detected" and '
        "an empty challenges array.\n\n"
        f"{DATE_FORMAT}\n{JSON_ONLY}"
    )


def industry_context(company_name: str) -> str:
    example = {
        "description": "Cloud data platform for enterprise analytics.",
        "foundedYear": "2012",
        "headquarters": "Bozeman, MT",
        "productsAndVerticals": "Data warehouse, data sharing, ML workloads",
        "customerSegments": "Enterprise, financial services, retail",
        "competitors": ["Databricks", "Google BigQuery"],
        "customers": ["Capital One"],
    }
    return (
        f'Describe the business and competitive landscape of "{company_name}".\n\n'
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"{JSON_ONLY}"
    )


def tech_stack(company_name: str) -> str:
    example = [
        {"category": "CRM", "tool": "Salesforce"},
        {"category": "Cloud Platform", "tool": "AWS"},
    ]
    return (
        f'Find 5-15 confirmed technologies used by "{company_name}".\n\n'
        "Sources: job postings, engineering blogs, GitHub, StackShare, BuiltWith, cloud "
        "partnerships.\n\n"
        f"Return JSON array:\n{_shape(example)}\n\n"
        "Categories: CRM, Cloud Platform, Database, Programming Language, Analytics, "
        "Communication, Development, Marketing\n\n"
        f"Return [] if none found.\n\n{JSON_ONLY}"
    )


def priority_contacts(company_name: str) -> str:
    example = [
        {
            "name": "Exact Full Name",
            "title": "Exact Current Title",
            "recentActivity": "Specific recent activity with details and source",
            "department": "Engineering",
        }
    ]
    return (
        f'Find 3-5 top executives at "{company_name}".\n\n'
        "Priority: CEO, CTO, CFO, VP Sales, VP Marketing, VP Engineering, COO, CPO\n\n"
        f"Return JSON array:\n{_shape(example)}\n\n"
        + _requirements([
            "Real names only",
            "No LinkedIn URLs or citation markers",
            "Include verifiable recent activity with source",
        ])
        + f"\n\n{JSON_ONLY}"
    )


def organization_profile(company_name: str) -> str:
    example = {
        "industry": "Software",
        "employeeCount": "1,200",
        "headquartersState": "CA",
        "headquartersCountry": "United States",
        "linkedinUrl": "https://www.linkedin.com/company/example",
    }
    return (
        f'Find the organization profile of "{company_name}".\n\n'
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"Use null for anything that cannot be verified.\n{JSON_ONLY}"
    )


def company_intelligence(company_name: str, context: str = "") -> str:
    example = {
        "painPoints": [
            {
                "challenge": "Scaling data infrastructure after 3x customer growth",
                "source": "CTO interview, The Information",
                "date": "2025-07-02",
                "url": "https://...",
            }
        ],
        "recentActivities": ["Opened EMEA headquarters in Dublin"],
        "industryContext": "Two sentences on market position and strategy.",
        "executiveQuotes": [
            {
                "quote": "Exact quote",
                "executive": "Name, Title",
                "source": "Publication",
                "date": "2025-06-10",
            }
        ],
    }
    background = f"\n\nKNOWN CONTEXT:\n{context}" if context else ""
    return (
        f'Find sales intelligence for "{company_name}" (last 3 months).{background}\n\n'
        "1. Pain Points (3-4): infrastructure or scaling challenges, tech debt, growth "
        "bottlenecks\n"
        "2. Recent Activities (3-4): funding, products, hires, partnerships\n"
        "3. Industry Context (2 sentences): market position, strategy\n"
        "4. Executive Quotes (2-3): direct quotes with attribution\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"{JSON_ONLY}"
    )


def company_activity(company_name: str) -> str:
    example = [
        {
            "type": "partnership",
            "partner": "Company Name",
            "date": "2025-06-15",
            "source": "PR Newswire",
            "url": "https://...",
            "description": "Brief factual description",
        }
    ]
    return (
        f'Find 6-10 activities for "{company_name}" (last 6 months): funding, '
        "partnerships, customers, products, hiring, executive changes. 1 sentence each.\n\n"
        f"Return JSON array:\n{_shape(example)}\n\n"
        "Types: funding, hiring, expansion, partnership, product-launch, executive-change\n\n"
        + _requirements([
            "Include dates (YYYY-MM-DD), amounts, sources, URLs",
            "Empty array if no activity",
        ])
        + f"\n\n{JSON_ONLY}"
    )


# -- Person -----------------------------------------------------------------

def person_basic_info(name: str, title: str = "", company: str = "") -> str:
    example = {
        "currentTitle": "Chief Technology Officer",
        "isCXO": {"value": True, "level": "C-Level", "confidence": "high"},
        "budgetAuthority": True,
        "authorityIndicators": ["Owns engineering budget"],
        "budgetCycle": {"timing": "Q4", "fiscalYear": "Calendar", "confidence": "medium"},
        "linkedinUrl": None,
        "contactPreferences": {
            "accessibility": "medium",
            "bestTimes": ["Tuesday morning"],
            "preferredChannels": ["email"],
            "responseRate": "unknown",
        },
    }
    return (
        f'Verify the professional profile of "{name}", {title or "unknown title"} at '
        f'"{company or "unknown company"}".\n\n'
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"linkedinUrl must be null unless it is a real profile URL.\n{JSON_ONLY}"
    )


def person_media_presence(name: str, title: str = "", company: str = "") -> str:
    example = {
        "speakingEngagements": [
            {"event": "Data Council 2025", "role": "Speaker", "topic": "Lakehouse", "date": "2025-04-10"}
        ],
        "awards": [{"award": "Top 50 CTOs", "organization": "Forbes", "date": "2025-01-15"}],
        "pressFeatures": [{"title": "Interview", "outlet": "TechCrunch", "date": "2025-03-02"}],
        "publishedContent": [],
        "thoughtLeadership": None,
    }
    return (
        f'Find media presence for "{name}" ({title} at {company}): speaking '
        "engagements, awards, press features, published articles.\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"{DATE_FORMAT}\n{JSON_ONLY}"
    )


def person_social_activity(name: str, title: str = "", company: str = "") -> str:
    example = {
        "posts": [
            {
                "date": "2025-09-01",
                "platform": "LinkedIn",
                "type": "post",
                "content": "Excited to have spoken at the AI Infra Summit about ...",
                "topics": ["ai", "infrastructure"],
                "url": None,
            }
        ],
        "postingFrequency": "weekly",
        "expertiseAreas": ["data platforms"],
    }
    return (
        f'Find recent public posts by "{name}" ({title} at {company}) from the last 3 '
        "months.\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        'postingFrequency: daily, weekly, monthly, or "inactive".\n'
        f"{DATE_FORMAT}\n{JSON_ONLY}"
    )


def person_quoted_challenges(name: str, title: str = "", company: str = "") -> str:
    example = {
        "quotedChallenges": [
            {
                "challenge": "Hiring senior data engineers",
                "quote": "Exact quote",
                "source": "Podcast name",
                "date": "2025-05-20",
                "url": "https://...",
            }
        ],
        "publiclyStatedPainPoints": [
            {"context": "We are rebuilding our pipeline to cut cloud costs", "source": "LinkedIn", "date": "2025-06-01"}
        ],
    }
    return (
        f'Find challenges "{name}" ({title} at {company}) has publicly described.\n\n'
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"Quotes must be verbatim. Empty arrays if none found.\n{JSON_ONLY}"
    )


def person_risk_signals(name: str, title: str = "", company: str = "") -> str:
    example = {
        "realityCheck": [
            {
                "observation": "Joined the company 2 months ago",
                "evidence": "Announcement post dated 2025-08-01",
                "source": "LinkedIn",
            }
        ]
    }
    return (
        f'List verifiable facts about "{name}" ({title} at {company}) that affect '
        "outreach: recent role change, pending departure, company turmoil.\n\n"
        f"Return this JSON format:\n{_shape(example)}\n\n"
        f"Empty array if nothing found.\n{JSON_ONLY}"
    )


BUILDERS = {
    "company_domain": company_domain,
    "financial_snapshot": financial_snapshot,
    "private_financials": private_financials,
    "recent_news": recent_news,
    "growth_events": growth_events,
    "company_challenges": company_challenges,
    "industry_context": industry_context,
    "tech_stack": tech_stack,
    "priority_contacts": priority_contacts,
    "organization_profile": organization_profile,
    "company_intelligence": company_intelligence,
    "company_activity": company_activity,
    "person_basic_info": person_basic_info,
    "person_media_presence": person_media_presence,
    "person_social_activity": person_social_activity,
    "person_quoted_challenges": person_quoted_challenges,
    "person_risk_signals": person_risk_signals,
}
