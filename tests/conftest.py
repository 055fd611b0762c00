"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Callable

import pytest

from shieldlint.config import Settings
from shieldlint.discovery import build_context
from shieldlint.syntax.php_parser import PhpParser

# Sample PHP code for testing
SAMPLE_CONTROLLER = '''<?php

namespace App\\Http\\Controllers;

use App\\Models\\User;
use Illuminate\\Http\\Request;

class UserController extends Controller
{
    public function store(Request $request)
    {
        $user = User::create($request->all());
        return redirect()->route('users.show', $user);
    }

    public function update(Request $request, User $user)
    {
        $this->authorize('update', $user);
        $user->update($request->only(['name', 'email']));
        return back();
    }
}
'''

SAMPLE_MODEL = '''<?php

namespace App\\Models;

use Illuminate\\Database\\Eloquent\\Model;

class Post extends Model
{
    protected $fillable = [
        'title',
        'body',
        'user_id',
        'category_id',
    ];
}
'''

SAMPLE_UNPROTECTED_MODEL = '''<?php

namespace App\\Models;

use Illuminate\\Database\\Eloquent\\Model;

class Comment extends Model
{
}
'''

SAMPLE_ROUTES = '''<?php

use App\\Http\\Controllers\\UserController;
use Illuminate\\Support\\Facades\\Route;

Route::get('/', function () {
    return view('welcome');
});

Route::post('/users', [UserController::class, 'store']);

Route::middleware('auth')->group(function () {
    Route::put('/users/{user}', [UserController::class, 'update']);
});

Route::post('/login', [UserController::class, 'login']);
'''

SAMPLE_SQL = '''<?php

use Illuminate\\Support\\Facades\\DB;

function search($request, $id)
{
    $users = DB::select("SELECT * FROM users WHERE id = $id");
    $safe = DB::select('SELECT * FROM users WHERE id = ?', [$id]);
    $rows = DB::table('posts')->whereRaw('title = ' . $request->input('title'))->get();
    return [$users, $safe, $rows];
}
'''

SAMPLE_SESSION_CONFIG = '''<?php

return [
    'driver' => env('SESSION_DRIVER', 'file'),
    'lifetime' => 120,
    'secure' => env('SESSION_SECURE_COOKIE', false),
    'http_only' => false,
    'same_site' => null,
];
'''

SAMPLE_HASHING_CONFIG = '''<?php

return [
    'driver' => 'bcrypt',
    'bcrypt' => [
        'rounds' => env('BCRYPT_ROUNDS', 10),
    ],
    'argon' => [
        'memory' => 1024,
        'threads' => 2,
        'time' => 1,
    ],
];
'''


@pytest.fixture
def parser() -> PhpParser:
    """Fresh PHP parser."""
    return PhpParser()


@pytest.fixture
def laravel_project(tmp_path) -> Callable[[dict], Path]:
    """Factory writing ``{relative path: contents}`` into a project root."""

    def write(files: dict) -> Path:
        for relative, contents in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(contents, encoding="utf-8")
        return tmp_path

    return write


@pytest.fixture
def make_context(laravel_project):
    """Factory building a scan context over a freshly written project."""
    settings = Settings()

    def build(files: dict):
        root = laravel_project(files)
        return build_context(root, settings.paths_analyze, settings.excluded_paths)

    return build


@pytest.fixture
def sample_controller() -> str:
    return SAMPLE_CONTROLLER


@pytest.fixture
def sample_model() -> str:
    return SAMPLE_MODEL


@pytest.fixture
def sample_routes() -> str:
    return SAMPLE_ROUTES


@pytest.fixture
def sample_sql() -> str:
    return SAMPLE_SQL


@pytest.fixture
def sample_session_config() -> str:
    return SAMPLE_SESSION_CONFIG


@pytest.fixture
def sample_hashing_config() -> str:
    return SAMPLE_HASHING_CONFIG


@pytest.fixture
def sample_unprotected_model() -> str:
    return SAMPLE_UNPROTECTED_MODEL
