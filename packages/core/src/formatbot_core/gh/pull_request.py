from __future__ import annotations

from github import Auth, Github

from formatbot_core.models import PullRequestSnapshot, Reviewer

# Review states that set a reviewer's verdict; COMMENTED and PENDING leave it as is.
_VERDICT_STATES = {"APPROVED", "CHANGES_REQUESTED", "DISMISSED"}


def get_repo(repo_name: str, token: str | None, api_url: str = "https://api.github.com"):
    auth = Auth.Token(token) if token else None
    return Github(auth=auth, base_url=api_url).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def get_changed_paths(pr) -> list[str]:
    """Return the repository-relative paths a PR touches, skipping deleted files."""
    paths: list[str] = []
    for f in get_diff(pr):
        if f.status == "removed" or not f.filename:
            continue
        if f.filename not in paths:
            paths.append(f.filename)
    return paths


def get_reviewer_states(pr) -> dict[str, bool]:
    """Map each reviewer login to whether their current verdict is an approval.

    Reviews come back oldest first, so the last verdict per user wins.
    Requested reviewers who have not reviewed yet count as not approved.
    """
    states: dict[str, bool] = {}
    users, _teams = pr.get_review_requests()
    for user in users:
        states[user.login] = False
    for review in pr.get_reviews():
        if review.user is None:
            continue
        login = review.user.login
        if review.state in _VERDICT_STATES:
            states[login] = review.state == "APPROVED"
        else:
            states.setdefault(login, False)
    return states


def snapshot_from_pull(pr) -> PullRequestSnapshot:
    states = get_reviewer_states(pr)
    return PullRequestSnapshot(
        id=pr.number,
        branch=pr.head.ref,
        reviewers=tuple(Reviewer(name=login, approved=states[login]) for login in sorted(states)),
        open=pr.state == "open",
    )
