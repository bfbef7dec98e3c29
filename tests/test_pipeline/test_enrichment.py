"""Tests for record formatting and keyword enrichment."""

from datetime import date

import pytest

from dossier.pipeline import enrichment

TODAY = date(2026, 10, 17)


class TestDates:
    """Tests for date helpers."""

    def test_days_since(self):
        """Whole days, never negative; unparseable is None."""
        assert enrichment.days_since("2026-10-07", TODAY) == 10
        assert enrichment.days_since("2026-10-27T08:00:00Z", TODAY) == 10
        assert enrichment.days_since("last spring", TODAY) is None
        assert enrichment.days_since(None, TODAY) is None


class TestTechStack:
    """Tests for primary tech stack formatting."""

    @pytest.mark.parametrize("jobs,last_post,expected", [
        (25, "2026-10-07", "HOT"),
        (8, "2026-10-07", "WARM"),
        (25, "2026-08-01", "COLD"),
        (3, "2026-10-07", "COLD"),
        (25, None, "COLD"),
    ])
    def test_hiring_intensity(self, jobs, last_post, expected):
        """Intensity depends on job volume inside the 30-day window."""
        tech = {"jobs_count": jobs, "last_job_post": last_post}

        assert enrichment.hiring_intensity(tech, TODAY) == expected

    def test_format_tech_stack(self):
        """Items are categorized, verified and carry hiring data."""
        items = enrichment.format_tech_stack(
            [
                {
                    "name": "Salesforce",
                    "jobs_count": 25,
                    "teams_count": 2,
                    "people_count": 30,
                    "last_job_post": "2026-10-07",
                    "jobs_data_url": "https://sumble.com/jobs/sf",
                },
                {"name": "Snowflake"},
                {"jobs_count": 4},
            ],
            TODAY,
        )

        assert len(items) == 2
        salesforce, snowflake = items
        assert salesforce["category"] == "CRM"
        assert salesforce["verified"] is True
        assert salesforce["source"] == "primary"
        assert salesforce["hiringIntensity"] == "HOT"
        assert salesforce["daysSinceLastPost"] == 10
        assert salesforce["verificationUrl"] == "https://sumble.com/jobs/sf"
        assert snowflake["category"] == "Technology"
        assert snowflake["daysSinceLastPost"] is None

    def test_hiring_signals(self):
        """Recent sizable hiring becomes an activity signal."""
        items = enrichment.format_tech_stack(
            [
                {"name": "Salesforce", "jobs_count": 25, "last_job_post": "2026-10-07"},
                {"name": "Kafka", "jobs_count": 6, "last_job_post": "2026-10-01"},
                {"name": "Redis", "jobs_count": 2, "last_job_post": "2026-10-01"},
                {"name": "Go", "jobs_count": 40, "last_job_post": "2026-06-01"},
            ],
            TODAY,
        )

        signals = enrichment.hiring_signals(items, TODAY)

        assert [s["technology"] for s in signals] == ["Salesforce", "Kafka"]
        hot, warm = signals
        assert hot["strength"] == "hot"
        assert hot["urgency"] == "immediate"
        assert hot["note"] == "Posted 25 Salesforce jobs in last 30 days"
        assert warm["strength"] == "warm"
        assert warm["urgency"] == "moderate"

    def test_fallback_items_never_signal(self):
        """Knowledge-sourced entries have no job counts."""
        items = enrichment.tag_fallback([{"category": "CRM", "tool": "HubSpot"}])

        assert enrichment.hiring_signals(items, TODAY) == []


class TestActivity:
    """Tests for merging activity with hiring signals."""

    def test_merge_drops_knowledge_hiring_items(self):
        """Signals replace hiring items; the result is newest first."""
        activity = [
            {"type": "partnership", "date": "2026-09-01"},
            {"type": "hiring", "date": "2026-10-12"},
            {"type": "expansion", "description": "Hiring 50 engineers in Austin", "date": "2026-10-11"},
            {"type": "product", "date": None},
        ]
        signals = [{"type": "hiring", "date": "2026-10-07", "source": "primary"}]

        merged = enrichment.merge_activity(activity, signals)

        assert [item["type"] for item in merged] == ["hiring", "partnership", "product"]
        assert merged[0]["source"] == "primary"


class TestContacts:
    """Tests for contact formatting."""

    @pytest.mark.parametrize("start,months,category,text", [
        ("2026-08-01", 2, "NEW", "2 months"),
        ("2026-09-02", 1, "NEW", "1 month"),
        ("2025-10-17", 11, "RECENT", "11 months"),
        ("2024-10-17", 23, "ESTABLISHED", "1.9 years"),
        ("2023-10-17", 36, "ESTABLISHED", "3 years"),
    ])
    def test_tenure(self, start, months, category, text):
        """Tenure uses 30.44-day months and friendly text."""
        assert enrichment.tenure(start, TODAY) == {
            "totalMonths": months, "category": category, "displayText": text,
        }

    def test_tenure_unknown(self):
        """No start date means unknown tenure."""
        assert enrichment.tenure(None, TODAY)["category"] == "UNKNOWN"

    def test_format_contacts(self):
        """People become verified contacts; nameless ones are skipped."""
        contacts = enrichment.format_contacts(
            [
                {
                    "name": "Sam Lee",
                    "job_title": "VP Engineering",
                    "job_level": "VP",
                    "linkedin_url": "https://www.linkedin.com/in/samlee",
                    "start_date": "2026-08-01",
                    "id": 77,
                },
                {"name": "Ana Ruiz", "job_level": "Director"},
                {"job_title": "CEO"},
            ],
            TODAY,
        )

        assert len(contacts) == 2
        sam, ana = contacts
        assert sam["title"] == "VP Engineering"
        assert sam["profileUrl"] == "https://www.linkedin.com/in/samlee"
        assert sam["tenureCategory"] == "NEW"
        assert sam["recentActivity"] == "Joined as VP on 2026-08-01"
        assert sam["providerId"] == 77
        assert ana["title"] == "Unknown"
        assert ana["recentActivity"] == "Verified Director at company"

    def test_tag_fallback(self):
        """Fallback items are marked unverified; non-dicts are dropped."""
        assert enrichment.tag_fallback([{"name": "Jane"}, "noise"]) == [
            {"name": "Jane", "source": "knowledge-fallback", "verified": False},
        ]


class TestPainPoints:
    """Tests for keyword tagging."""

    @pytest.mark.parametrize("text,tag", [
        ("Scaling the platform for new regions", "scaling"),
        ("GDPR obligations in Europe", "compliance"),
        ("Recruiting senior engineers", "hiring"),
        ("Cutting cloud cost", "budget"),
        ("Zero trust security rollout", "security"),
        ("Quarterly planning", "general"),
        (None, "general"),
    ])
    def test_tag(self, text, tag):
        """The first matching keyword group wins."""
        assert enrichment.pain_point_tag(text) == tag

    @pytest.mark.parametrize("text,priority", [
        ("This is critical for the board", "critical"),
        ("Our biggest hurdle", "high"),
        ("Exploring options for next year", "low"),
        ("Ongoing effort", "medium"),
    ])
    def test_priority(self, text, priority):
        """Priority comes from the strongest keyword present."""
        assert enrichment.pain_point_priority(text) == priority


class TestThoughtLeadership:
    """Tests for recovering speaking, awards and media from posts."""

    def test_speaking(self):
        """Speaking posts yield events with role and topic."""
        posts = [
            {"content": "Joined a panel at the Cloud Native Forum.", "date": "2026-09-10", "topics": ["k8s"]},
            {"content": "Excited to speak at the Data Leaders Summit next week!", "date": "2026-09-01"},
        ]

        speaking = enrichment.extract_thought_leadership(posts, TODAY)["speaking"]

        assert [s["event"] for s in speaking] == ["Cloud Native Forum", "Data Leaders Summit"]
        assert speaking[0]["role"] == "panelist"
        assert speaking[0]["topic"] == "k8s"
        assert speaking[1]["role"] == "speaker"
        assert speaking[1]["topic"] == "Industry insights and trends"

    def test_awards(self):
        """Award posts yield the award and the granting organization."""
        posts = [{"content": "Honored to be named to the Top 50 CTO List by Forbes.", "date": "2026-08-01"}]

        awards = enrichment.extract_thought_leadership(posts, TODAY)["awards"]

        assert len(awards) == 1
        assert "Top 50 CTO List" in awards[0]["award"]
        assert awards[0]["organization"] == "Forbes"

    def test_media(self):
        """Media mentions name the publication and truncate the title."""
        posts = [{"content": "Featured in TechCrunch, talking about data platforms.", "url": "https://x.io/p"}]

        media = enrichment.extract_thought_leadership(posts, TODAY)["media"]

        assert media[0]["publication"] == "TechCrunch"
        assert media[0]["title"].endswith("...")
        assert media[0]["date"] == "2026-10-17"

    def test_defaults_and_dedupe(self):
        """Unnamed events get defaults; repeats on one date collapse."""
        posts = [
            {"content": "Loved the keynote today", "date": "2026-09-01"},
            {"content": "Keynote went well, thanks everyone", "date": "2026-09-01"},
            "not a post",
        ]

        speaking = enrichment.extract_thought_leadership(posts, TODAY)["speaking"]

        assert len(speaking) == 1
        assert speaking[0]["event"] == "Conference/Event"
        assert speaking[0]["role"] == "keynote"
