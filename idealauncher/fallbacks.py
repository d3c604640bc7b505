# Static results used when the model's reply cannot be parsed or validated

from typing import Any, Dict, List, Optional

ANALYSIS_ERROR = "Analysis Error"

COMPETITOR_ERROR = [{
    "name": ANALYSIS_ERROR,
    "description": "Unable to parse competitor analysis. Please try again.",
    "url": "",
    "features": [],
    "differentiation": "",
}]

MONETIZATION_ERROR = [{
    "model": ANALYSIS_ERROR,
    "description": "Unable to parse monetization analysis. Please try again.",
    "examples": [],
    "pricing": "",
    "pros": [],
    "cons": [],
}]

NAMING_ERROR = [{
    "name": ANALYSIS_ERROR,
    "explanation": "Unable to parse name suggestions. Please try again.",
    "style": "Error",
}]

MVP_FEATURES = [
    {"title": "User Registration & Authentication",
     "description": "Allow users to create accounts and securely log in",
     "priority": "MUST", "estimate": "M", "dependencies": []},
    {"title": "Core Feature Implementation",
     "description": "Implement the main value proposition of the product",
     "priority": "MUST", "estimate": "L", "dependencies": []},
    {"title": "Basic User Interface",
     "description": "Clean, intuitive interface for core functionality",
     "priority": "MUST", "estimate": "M", "dependencies": []},
    {"title": "Data Persistence",
     "description": "Store and retrieve user data reliably",
     "priority": "MUST", "estimate": "S", "dependencies": []},
    {"title": "User Profile Management",
     "description": "Allow users to manage their account settings",
     "priority": "SHOULD", "estimate": "S", "dependencies": []},
    {"title": "Basic Analytics",
     "description": "Track key user interactions and usage patterns",
     "priority": "COULD", "estimate": "M", "dependencies": []},
]

TECH_RECOMMENDATIONS = [
    {
        "category": "Frontend Framework & UI",
        "technology": "React + Tailwind CSS",
        "description": "Component-based UI library with utility-first styling",
        "rationale": "Large ecosystem, accessible component libraries and fast iteration for a small team",
        "implementationTips": [
            "Start from an accessible component kit instead of hand-built widgets",
            "Keep design tokens in the Tailwind config",
            "Co-locate component tests with components",
        ],
        "alternatives": ["Vue", "Svelte", "Angular"],
        "difficulty": "Beginner",
    },
    {
        "category": "Backend & API",
        "technology": "FastAPI",
        "description": "Typed Python web framework with automatic request validation and OpenAPI docs",
        "rationale": "Pydantic models double as the API contract and the generated docs help frontend work",
        "implementationTips": [
            "Group endpoints into routers per resource",
            "Validate every request body with a pydantic model",
            "Translate domain errors into JSON responses with exception handlers",
        ],
        "alternatives": ["Django REST Framework", "Express", "Flask"],
        "difficulty": "Intermediate",
    },
    {
        "category": "Database & Storage",
        "technology": "PostgreSQL",
        "description": "Relational database with strong consistency and JSON support",
        "rationale": "Covers relational data and semi-structured metadata in one managed service",
        "implementationTips": [
            "Manage schema changes with migrations",
            "Use connection pooling in production",
            "Add indexes for the queries the dashboard runs",
        ],
        "alternatives": ["Firestore", "MySQL", "Supabase"],
        "difficulty": "Beginner",
    },
    {
        "category": "Authentication & Security",
        "technology": "Firebase Authentication",
        "description": "Hosted identity service with OAuth providers and ID tokens",
        "rationale": "Removes password storage and session handling from the first release",
        "implementationTips": [
            "Verify ID tokens on every API request",
            "Enable Google and GitHub sign-in providers",
            "Scope all stored data by user id",
        ],
        "alternatives": ["Auth0", "Clerk", "Supabase Auth"],
        "difficulty": "Intermediate",
    },
    {
        "category": "Deployment & Infrastructure",
        "technology": "Cloud Run + GitHub Actions",
        "description": "Serverless containers deployed from CI on every merge",
        "rationale": "Scales to zero for an early product and keeps deployment reproducible",
        "implementationTips": [
            "Build one container image per commit",
            "Keep secrets in a secret manager, not in the image",
            "Deploy preview revisions for pull requests",
        ],
        "alternatives": ["Vercel", "Fly.io", "Render"],
        "difficulty": "Beginner",
    },
    {
        "category": "Testing & Quality",
        "technology": "pytest + Playwright",
        "description": "Unit and API tests with pytest, end-to-end browser tests with Playwright",
        "rationale": "Covers server logic quickly and catches regressions in the main user flows",
        "implementationTips": [
            "Mock external services at the client boundary",
            "Run API tests against a test client rather than a live server",
            "Keep a small smoke suite of end-to-end tests",
        ],
        "alternatives": ["Jest", "Cypress", "Vitest"],
        "difficulty": "Intermediate",
    },
]


def fallback_features() -> List[Dict[str, Any]]:
    return [dict(feature) for feature in MVP_FEATURES]


def fallback_tech_stack() -> List[Dict[str, Any]]:
    return [dict(rec) for rec in TECH_RECOMMENDATIONS]


def _story_block(features: List[Dict[str, Any]], benefit: str, criteria: List[str]) -> str:
    blocks = []
    for index, feature in enumerate(features, start=1):
        lines = [
            f"#### {index}. {feature['title']}",
            "",
            f"**User Story:** As a user, I want {feature['title'].lower()}, so that {benefit}.",
            "",
            "**Acceptance Criteria:**",
            *[f"- {criterion}" for criterion in criteria],
        ]
        if feature.get("description"):
            lines += ["", f"**Description:** {feature['description']}"]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def fallback_spec(title: str, one_liner: Optional[str], features: List[Dict[str, Any]]) -> str:
    """Template specification built only from the idea and its features."""
    must = [f for f in features if f.get("priority") == "MUST"]
    should = [f for f in features if f.get("priority") == "SHOULD"]
    could = [f for f in features if f.get("priority") == "COULD"]

    core = _story_block(must, "I can achieve my goals efficiently", [
        "WHEN I access this feature THEN the system SHALL provide the expected functionality",
        "WHEN I interact with the interface THEN the system SHALL respond appropriately",
        "WHEN errors occur THEN the system SHALL handle them gracefully",
    ])
    enhanced = _story_block(should, "I can have an enhanced experience", [
        "WHEN I use this feature THEN the system SHALL provide additional value",
        "WHEN I interact with enhanced functionality THEN the system SHALL maintain performance",
        "WHEN this feature is unavailable THEN the core functionality SHALL remain intact",
    ])
    out_of_scope = "\n".join(f"- {f['title']}" for f in could) or "- Advanced analytics and reporting"

    return f"""# {title} - Technical Specification

## Overview

{one_liner or 'A software solution designed to solve specific user needs.'}

This project aims to build a minimum viable product that addresses core user requirements while maintaining high quality and usability standards.

## Goals

- Deliver core functionality that solves the primary user problem
- Create an intuitive and responsive user experience
- Build a scalable and maintainable technical foundation
- Validate product-market fit through user feedback
- Establish a foundation for future feature development

## User Stories

### Core Features (Must Have)

{core}

### Enhanced Features (Should Have)

{enhanced}

## Scope

### In Scope

- All Must Have features listed above
- Should Have features as time and resources permit
- Basic user authentication and data persistence
- Responsive web interface
- Core API functionality
- Basic error handling and validation

### Out of Scope

{out_of_scope}
- Mobile native applications (initial release)
- Advanced integrations with third-party services
- Complex user role management

## Non-Functional Requirements

### Performance
- Page load times under 3 seconds
- API response times under 500ms for standard operations

### Security
- Secure user authentication and session management
- Data encryption in transit and at rest
- Input validation and sanitization

### Usability
- Responsive design supporting desktop and mobile devices
- Accessible design following WCAG guidelines
- Clear error messages and user feedback

## Technical Architecture

- Frontend: modern web framework
- Backend: RESTful API
- Database: managed relational or document database
- Authentication: hosted identity provider
- Hosting: cloud platform with CI/CD pipeline

## Implementation Milestones

### Phase 1: Foundation (Weeks 1-2)
- Set up development environment and project structure
- Implement basic authentication system
- Create core data model

### Phase 2: Core Features (Weeks 3-4)
- Implement Must Have features
- Create API endpoints for core functionality

### Phase 3: Enhancement (Weeks 5-6)
- Implement Should Have features
- Add comprehensive testing

### Phase 4: Launch Preparation (Week 7)
- Final testing and bug fixes
- Production deployment

---

*This specification serves as a living document and may be updated as requirements evolve during development.*
"""
