"""Every API router, combined under the configured prefix."""

from fastapi import APIRouter

from nexbyte.routes import (
    hackathons,
    news,
    notes,
    outbox,
    posts,
    programs,
    rewards,
    submissions,
    technologies,
    testimonials,
    webinars,
)

router = APIRouter()
router.include_router(technologies.router)
router.include_router(news.router)
router.include_router(rewards.router)
router.include_router(hackathons.router)
router.include_router(programs.router)
router.include_router(webinars.router)
router.include_router(posts.tech_posts_router)
router.include_router(posts.social_posts_router)
router.include_router(posts.ai_posts_router)
router.include_router(submissions.router)
router.include_router(testimonials.router)
router.include_router(notes.notes_router)
router.include_router(notes.todos_router)
router.include_router(outbox.router)
