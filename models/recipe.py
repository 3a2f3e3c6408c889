"""
Recipe Models

Contains the Recipe, Ingredient, Tag and RecipeImage models plus the
recipe_tags association that keeps each recipe's tag order.
"""

from .base import db, now


class Recipe(db.Model):
    """Recipe with metadata, ordered ingredients, tags and images."""
    __tablename__ = 'recipes'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    source = db.Column(db.String(255))
    date_added = db.Column(db.Integer, nullable=False, default=now, index=True)
    instructions = db.Column(db.Text)
    servings = db.Column(db.Integer)
    estimated_calories = db.Column(db.Integer)
    calories_confidence = db.Column(db.String(10))  # low / medium / high
    times_cooked = db.Column(db.Integer, nullable=False, default=0)
    image_path = db.Column(db.String(255))
    created_at = db.Column(db.Integer, nullable=False, default=now)
    updated_at = db.Column(db.Integer, nullable=False, default=now, onupdate=now)

    ingredients = db.relationship(
        'Ingredient', backref='recipe', lazy=True,
        order_by='Ingredient.position', cascade='all, delete-orphan'
    )
    tag_links = db.relationship(
        'RecipeTag', backref='recipe', lazy=True,
        order_by='RecipeTag.position', cascade='all, delete-orphan'
    )
    images = db.relationship(
        'RecipeImage', backref='recipe', lazy=True,
        order_by=lambda: [RecipeImage.is_hero.desc(), RecipeImage.position],
        cascade='all, delete-orphan'
    )

    @property
    def tag_names(self):
        return [link.tag.name for link in self.tag_links]

    @property
    def hero_image(self):
        """First hero image, else the first image, else None."""
        for image in self.images:
            if image.is_hero:
                return image
        return self.images[0] if self.images else None


class Ingredient(db.Model):
    """Ingredient line belonging to exactly one recipe."""
    __tablename__ = 'ingredients'

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    quantity = db.Column(db.String(50))  # free text, unit-agnostic
    unit = db.Column(db.String(50))
    position = db.Column(db.Integer, nullable=False)


class Tag(db.Model):
    """Tag name, stored lowercase; unique across recipes."""
    __tablename__ = 'tags'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.Integer, nullable=False, default=now)


class RecipeTag(db.Model):
    """Join table linking recipes to tags, with the tag's position in the recipe."""
    __tablename__ = 'recipe_tags'

    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), primary_key=True)
    tag_id = db.Column(db.Integer, db.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    tag = db.relationship('Tag')


class RecipeImage(db.Model):
    """Uploaded image attached to a recipe; at most one hero per recipe."""
    __tablename__ = 'recipe_images'

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255))
    file_path = db.Column(db.String(500))
    file_size = db.Column(db.Integer, default=0)
    mime_type = db.Column(db.String(100), default='image/jpeg')
    is_hero = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    uploaded_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.Integer, nullable=False, default=now)

    @property
    def url(self):
        return f'/uploads/images/{self.filename}'
