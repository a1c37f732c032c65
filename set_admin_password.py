# set_admin_password.py
import os
import sys
from werkzeug.security import generate_password_hash
from vidros_app import create_app
from vidros_app.extensions import db
from vidros_app.models import User


def setup_initial_admin(username=None, email=None, password=None, nome='Administrador'):
    """Cria o administrador inicial ou repõe a sua password. Devolve o utilizador."""
    username = username or os.environ.get('ADMIN_USERNAME') or 'admin'
    email = email or os.environ.get('ADMIN_EMAIL')
    password = password or os.environ.get('ADMIN_PASSWORD')
    if not password or len(password) < 6:
        raise ValueError('Defina ADMIN_PASSWORD com pelo menos 6 caracteres.')

    user = User.query.filter_by(username=username).first()
    if user:
        print(f"O utilizador {username} já existe. Atualizando password e permissões...")
        user.password_hash = generate_password_hash(password)
        user.role = 'admin'
        user.loja_id = None
        user.active = True
        if email:
            user.email = email
    else:
        print(f"Criando novo utilizador administrador: {username}...")
        user = User(
            username=username,
            email=email,
            name=nome,
            role='admin',
            password_hash=generate_password_hash(password),
        )
        db.session.add(user)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        try:
            admin = setup_initial_admin()
        except ValueError as e:
            print(e)
            sys.exit(1)
        print("\n" + "=" * 40)
        print(" ADMIN CONFIGURADO COM SUCESSO!")
        print(f" Utilizador: {admin.username}")
        print("=" * 40)
