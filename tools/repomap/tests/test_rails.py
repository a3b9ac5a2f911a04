from __future__ import annotations

from pathlib import Path

from repomap.analyzers.rails import RailsModelsAnalyzer, RailsRoutesAnalyzer, parse_model, strip_comment, tableize
from repomap.config import RepositoryConfig

ROUTES = """Rails.application.routes.draw do
  root "home#index"
  resources :users, only: [:index, :show] do
    resources :posts, only: [:index]
    member do
      post :activate
    end
  end
  namespace :admin do
    resources :reports, only: :index # reporting
  end
  authenticate :user do
    get "/dashboard", to: "dashboard#show"
  end
end
"""

USER_MODEL = """class User < ApplicationRecord
  has_many :posts, dependent: :destroy
  belongs_to :organization, class_name: "Company", foreign_key: "org_id"
  validates :email, :name, presence: true
  scope :active, -> { where(active: true) }
  enum status: { pending: 0, active: 1 }
end
"""


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _config(repo: Path) -> RepositoryConfig:
    return RepositoryConfig(name="api", path=str(repo), type="rails", analyzers=["routes", "models"])


def test_routes_with_nesting_namespaces_and_auth(tmp_path: Path) -> None:
    repo = tmp_path / "api"
    _write(repo, "config/routes.rb", ROUTES)

    endpoints = RailsRoutesAnalyzer(_config(repo)).run().api_endpoints

    assert [(item.method, item.path, f"{item.controller}#{item.action}") for item in endpoints] == [
        ("GET", "/", "home#index"),
        ("GET", "/users", "users#index"),
        ("GET", "/users/:id", "users#show"),
        ("GET", "/users/:user_id/posts", "posts#index"),
        ("POST", "/users/:id/activate", "users#activate"),
        ("GET", "/admin/reports", "admin/reports#index"),
        ("GET", "/dashboard", "dashboard#show"),
    ]
    assert [item.path for item in endpoints if item.authentication] == ["/dashboard"]
    assert endpoints[0].file_path == "config/routes.rb"
    assert endpoints[0].line == 2


def test_drawn_route_files(tmp_path: Path) -> None:
    repo = tmp_path / "api"
    _write(repo, "config/routes.rb", "Rails.application.routes.draw do\n  namespace :v1 do\n    draw :billing\n  end\nend\n")
    _write(repo, "config/routes/billing.rb", "resource :subscription, only: [:show, :update]\n")

    endpoints = RailsRoutesAnalyzer(_config(repo)).run().api_endpoints

    assert [(item.method, item.path, item.controller) for item in endpoints] == [
        ("GET", "/v1/subscription", "v1/subscriptions"),
        ("PATCH", "/v1/subscription", "v1/subscriptions"),
    ]
    assert {item.file_path for item in endpoints} == {"config/routes/billing.rb"}


def test_missing_routes_file_yields_nothing(tmp_path: Path) -> None:
    assert RailsRoutesAnalyzer(_config(tmp_path)).run().api_endpoints == []


def test_model_parsing() -> None:
    model = parse_model(USER_MODEL, "app/models/user.rb")

    assert model is not None
    assert model.name == "User"
    assert model.table_name == "users"
    assert [(item.type, item.name, item.model, item.foreign_key) for item in model.associations] == [
        ("has_many", "posts", "Post", None),
        ("belongs_to", "organization", "Company", "org_id"),
    ]
    assert model.validations == ["presence: email, name"]
    assert model.scopes == ["active"]
    assert model.attributes == ["status"]


def test_models_analyzer_skips_plain_ruby(tmp_path: Path) -> None:
    repo = tmp_path / "api"
    _write(repo, "app/models/user.rb", USER_MODEL)
    _write(repo, "app/models/concerns/searchable.rb", "module Searchable\nend\n")

    models = RailsModelsAnalyzer(_config(repo)).run().models

    assert [(item.name, item.file_path) for item in models] == [("User", "app/models/user.rb")]


def test_helpers() -> None:
    assert strip_comment('get "/a#b" # note') == 'get "/a#b"'
    assert tableize("Category") == "categories"
    assert tableize("Admin::Box") == "boxes"
