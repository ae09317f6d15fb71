import click
from flask import current_app
from flask.cli import with_appcontext

from abstract_portal.extensions import db
from abstract_portal.models import Abstract, AbstractCategory, Role, User
from abstract_portal.utils.model_utils import abstract_utils

SAMPLE_ABSTRACTS = [
    ("Haploidentical transplant outcomes in children", AbstractCategory.FREE_PAPER),
    ("Post-transplant cyclophosphamide in thalassemia", AbstractCategory.AWARD_PAPER),
    ("CMV reactivation after cord blood transplant", AbstractCategory.POSTER),
    ("Nutrition support during conditioning", AbstractCategory.E_POSTER),
]


def _ensure_user(email, password, full_name, role):
    email = email.strip().lower()
    user = User.query.filter_by(email=email).first()
    if user:
        return user, False
    user = User(email=email, full_name=full_name, is_active=True)
    user.set_password(password)
    user.roles.append(role)
    db.session.add(user)
    db.session.commit()
    return user, True


@click.command("seed")
@with_appcontext
def seed_command():
    """Seed an admin, a demo delegate and a few pending abstracts."""
    admin_pwd = current_app.config.get("ADMIN_PASSWORD")
    if admin_pwd:
        _, created = _ensure_user(
            current_app.config["ADMIN_EMAIL"],
            admin_pwd,
            current_app.config.get("ADMIN_FULL_NAME"),
            Role.ADMIN,
        )
        if created:
            click.echo("Seeded admin account.")
    else:
        click.echo("ADMIN_PASSWORD not set; skipping admin seed.")

    delegate, _ = _ensure_user("delegate@example.com", "Delegate123", "Demo Delegate", Role.DELEGATE)

    if Abstract.query.count() == 0:
        for title, category in SAMPLE_ABSTRACTS:
            abstract_utils.create_abstract(
                commit=False,
                actor_id=delegate.id,
                title=title,
                presenter_name=delegate.full_name,
                institution="Demo Institute",
                content=f"Background, methods and results for: {title}.",
                category=category,
                user_id=delegate.id,
            )
        db.session.commit()
        click.echo(f"Seeded {len(SAMPLE_ABSTRACTS)} sample abstracts.")


@click.command("create-admin")
@click.option("--email", prompt=True)
@click.option("--full-name", default="Scientific Committee", show_default=True)
@click.password_option()
@with_appcontext
def create_admin_command(email, full_name, password):
    """Create an admin account."""
    try:
        _, created = _ensure_user(email, password, full_name, Role.ADMIN)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    if not created:
        raise click.ClickException(f"User {email} already exists.")
    click.echo(f"Admin {email} created.")
