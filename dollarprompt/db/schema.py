"""
Reference schema for the DollarPrompt Supabase project.
Designed for Supabase (Postgres) with Row Level Security.

The service never runs DDL - scripts/setup_database.py prints this SQL
for an operator to paste into the Supabase SQL editor.

Tables:
- profiles: one per auth user - credits, role, telegram reward flag
- categories: reference data
- prompts: the catalog (prompt_id is the 5-digit human-facing number)
- unlocked_prompts: presence of a row = user paid for the prompt
- daily_ad_claims / daily_link_claims: one claim per user per key per day
- user_coupon_claims: one claim per user per coupon, ever
- coupons, app_config, hero_images, ad_views

Credits are only ever changed inside the RPC functions in RPC_SQL.
"""

SCHEMA_SQL = """
-- Profiles
-- Mirrors auth.users 1:1; credits never written by clients directly
CREATE TABLE IF NOT EXISTS profiles (
    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    email TEXT,
    credits INTEGER NOT NULL DEFAULT 5 CHECK (credits >= 0),
    role TEXT NOT NULL DEFAULT 'user',
    has_claimed_telegram_reward BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS categories (
    id SERIAL PRIMARY KEY,
    name TEXT UNIQUE NOT NULL,
    slug TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS prompts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    prompt_id SERIAL UNIQUE NOT NULL,
    title TEXT NOT NULL,
    category_id INTEGER REFERENCES categories(id) NOT NULL,
    image_url TEXT NOT NULL,
    prompt_text TEXT NOT NULL,
    instructions TEXT,
    creator_name TEXT,
    instagram_handle TEXT,
    ad_direct_link_url TEXT,
    like_count INTEGER NOT NULL DEFAULT 0 CHECK (like_count >= 0),
    created_by UUID REFERENCES auth.users(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS unlocked_prompts (
    user_id UUID REFERENCES profiles(id) ON DELETE CASCADE NOT NULL,
    prompt_id UUID REFERENCES prompts(id) ON DELETE CASCADE NOT NULL,
    unlocked_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (user_id, prompt_id)
);

CREATE TABLE IF NOT EXISTS daily_ad_claims (
    id SERIAL PRIMARY KEY,
    user_id UUID REFERENCES profiles(id) ON DELETE CASCADE NOT NULL,
    reward_slot INTEGER NOT NULL,
    claim_date DATE NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc')::date,
    claimed_at TIMESTAMPTZ DEFAULT NOW(),

    -- One claim per user per slot per day
    UNIQUE(user_id, reward_slot, claim_date)
);

CREATE TABLE IF NOT EXISTS daily_link_claims (
    id SERIAL PRIMARY KEY,
    user_id UUID REFERENCES profiles(id) ON DELETE CASCADE NOT NULL,
    link_id TEXT NOT NULL,
    claim_date DATE NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc')::date,
    claimed_at TIMESTAMPTZ DEFAULT NOW(),

    UNIQUE(user_id, link_id, claim_date)
);

CREATE TABLE IF NOT EXISTS coupons (
    code TEXT PRIMARY KEY,
    credits INTEGER NOT NULL CHECK (credits > 0),
    is_active BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS user_coupon_claims (
    id SERIAL PRIMARY KEY,
    user_id UUID REFERENCES profiles(id) ON DELETE CASCADE NOT NULL,
    coupon_code TEXT REFERENCES coupons(code) NOT NULL,
    claim_date DATE NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc')::date,
    claimed_at TIMESTAMPTZ DEFAULT NOW(),

    -- Once per user per coupon, ever
    UNIQUE(user_id, coupon_code)
);

CREATE TABLE IF NOT EXISTS app_config (
    config_key TEXT PRIMARY KEY,
    config_value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS hero_images (
    id SERIAL PRIMARY KEY,
    image_url TEXT NOT NULL,
    alt_text TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS ad_views (
    id SERIAL PRIMARY KEY,
    user_id UUID REFERENCES profiles(id) ON DELETE SET NULL,
    reward_slot INTEGER,
    payout NUMERIC(10, 4),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Row Level Security (RLS) policies
ALTER TABLE profiles ENABLE ROW LEVEL SECURITY;
ALTER TABLE unlocked_prompts ENABLE ROW LEVEL SECURITY;
ALTER TABLE daily_ad_claims ENABLE ROW LEVEL SECURITY;
ALTER TABLE daily_link_claims ENABLE ROW LEVEL SECURITY;
ALTER TABLE user_coupon_claims ENABLE ROW LEVEL SECURITY;
ALTER TABLE prompts ENABLE ROW LEVEL SECURITY;
ALTER TABLE categories ENABLE ROW LEVEL SECURITY;
ALTER TABLE hero_images ENABLE ROW LEVEL SECURITY;
ALTER TABLE app_config ENABLE ROW LEVEL SECURITY;
ALTER TABLE ad_views ENABLE ROW LEVEL SECURITY;

CREATE POLICY profiles_select_own ON profiles
    FOR SELECT USING (auth.uid() = id);

CREATE POLICY unlocked_select_own ON unlocked_prompts
    FOR SELECT USING (auth.uid() = user_id);

CREATE POLICY ad_claims_select_own ON daily_ad_claims
    FOR SELECT USING (auth.uid() = user_id);

CREATE POLICY link_claims_select_own ON daily_link_claims
    FOR SELECT USING (auth.uid() = user_id);

CREATE POLICY coupon_claims_select_own ON user_coupon_claims
    FOR SELECT USING (auth.uid() = user_id);

-- Catalog: readable by everyone, uploads open to everyone
CREATE POLICY prompts_select_all ON prompts FOR SELECT USING (TRUE);
CREATE POLICY prompts_insert_all ON prompts FOR INSERT WITH CHECK (TRUE);
CREATE POLICY categories_select_all ON categories FOR SELECT USING (TRUE);
CREATE POLICY hero_select_all ON hero_images FOR SELECT USING (TRUE);
CREATE POLICY config_select_all ON app_config FOR SELECT USING (TRUE);
"""

RPC_SQL = """
-- Every new auth user gets a profile with the starting balance
CREATE OR REPLACE FUNCTION handle_new_user()
RETURNS TRIGGER LANGUAGE plpgsql SECURITY DEFINER AS $$
BEGIN
    INSERT INTO profiles (id, email) VALUES (NEW.id, NEW.email)
        ON CONFLICT (id) DO NOTHING;
    RETURN NEW;
END;
$$;

DROP TRIGGER IF EXISTS on_auth_user_created ON auth.users;
CREATE TRIGGER on_auth_user_created
    AFTER INSERT ON auth.users
    FOR EACH ROW EXECUTE FUNCTION handle_new_user();

CREATE OR REPLACE FUNCTION is_admin(p_user_id UUID)
RETURNS BOOLEAN LANGUAGE sql SECURITY DEFINER STABLE AS $$
    SELECT EXISTS (SELECT 1 FROM profiles WHERE id = p_user_id AND role = 'admin');
$$;

-- Idempotent: a second purchase of the same prompt charges nothing
CREATE OR REPLACE FUNCTION purchase_prompt(p_prompt_id_in UUID, p_cost_in INTEGER)
RETURNS VOID LANGUAGE plpgsql SECURITY DEFINER AS $$
DECLARE
    v_cost INTEGER := GREATEST(
        p_cost_in,
        COALESCE((SELECT config_value::int FROM app_config WHERE config_key = 'prompt_cost'), 1)
    );
BEGIN
    IF EXISTS (SELECT 1 FROM unlocked_prompts
               WHERE user_id = auth.uid() AND prompt_id = p_prompt_id_in) THEN
        RETURN;
    END IF;
    UPDATE profiles SET credits = credits - v_cost
        WHERE id = auth.uid() AND credits >= v_cost;
    IF NOT FOUND THEN
        RAISE EXCEPTION 'Not enough credits';
    END IF;
    INSERT INTO unlocked_prompts (user_id, prompt_id) VALUES (auth.uid(), p_prompt_id_in);
END;
$$;

CREATE OR REPLACE FUNCTION claim_ad_reward(p_slot INTEGER)
RETURNS VOID LANGUAGE plpgsql SECURITY DEFINER AS $$
BEGIN
    INSERT INTO daily_ad_claims (user_id, reward_slot) VALUES (auth.uid(), p_slot);
    INSERT INTO ad_views (user_id, reward_slot) VALUES (auth.uid(), p_slot);
    UPDATE profiles SET credits = credits + 3 WHERE id = auth.uid();
EXCEPTION WHEN unique_violation THEN
    RAISE EXCEPTION 'Reward already claimed today';
END;
$$;

CREATE OR REPLACE FUNCTION claim_link_reward(p_link_id TEXT)
RETURNS VOID LANGUAGE plpgsql SECURITY DEFINER AS $$
BEGIN
    INSERT INTO daily_link_claims (user_id, link_id) VALUES (auth.uid(), p_link_id);
    UPDATE profiles SET credits = credits + 1 WHERE id = auth.uid();
EXCEPTION WHEN unique_violation THEN
    RAISE EXCEPTION 'Reward already claimed today';
END;
$$;

CREATE OR REPLACE FUNCTION claim_telegram_reward()
RETURNS VOID LANGUAGE plpgsql SECURITY DEFINER AS $$
BEGIN
    UPDATE profiles
        SET credits = credits + 10, has_claimed_telegram_reward = TRUE
        WHERE id = auth.uid() AND has_claimed_telegram_reward = FALSE;
    IF NOT FOUND THEN
        RAISE EXCEPTION 'Telegram reward already claimed';
    END IF;
END;
$$;

-- Returns credited amount; 0 means invalid or already used
CREATE OR REPLACE FUNCTION claim_coupon_reward(p_coupon_code TEXT)
RETURNS INTEGER LANGUAGE plpgsql SECURITY DEFINER AS $$
DECLARE
    v_credits INTEGER;
BEGIN
    SELECT credits INTO v_credits FROM coupons
        WHERE code = upper(p_coupon_code) AND is_active = TRUE;
    IF v_credits IS NULL THEN
        RETURN 0;
    END IF;
    INSERT INTO user_coupon_claims (user_id, coupon_code) VALUES (auth.uid(), upper(p_coupon_code));
    UPDATE profiles SET credits = credits + v_credits WHERE id = auth.uid();
    RETURN v_credits;
EXCEPTION WHEN unique_violation THEN
    RETURN 0;
END;
$$;

CREATE OR REPLACE FUNCTION increment_like_count(p_prompt_id UUID)
RETURNS VOID LANGUAGE sql SECURITY DEFINER AS $$
    UPDATE prompts SET like_count = like_count + 1 WHERE id = p_prompt_id;
$$;

-- Catalog edits are admin-only (needs is_admin above)
CREATE POLICY prompts_admin_update ON prompts
    FOR UPDATE USING (is_admin(auth.uid()));
CREATE POLICY prompts_admin_delete ON prompts
    FOR DELETE USING (is_admin(auth.uid()));
CREATE POLICY hero_admin_all ON hero_images
    FOR ALL USING (is_admin(auth.uid()));
CREATE POLICY ad_views_admin_select ON ad_views
    FOR SELECT USING (is_admin(auth.uid()));
"""

SEED_SQL = """
INSERT INTO app_config (config_key, config_value) VALUES ('prompt_cost', '1')
    ON CONFLICT (config_key) DO NOTHING;
"""

INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_prompts_created ON prompts(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_prompts_category ON prompts(category_id);
CREATE INDEX IF NOT EXISTS idx_prompts_creator ON prompts(creator_name);
CREATE INDEX IF NOT EXISTS idx_unlocked_user ON unlocked_prompts(user_id);
CREATE INDEX IF NOT EXISTS idx_ad_claims_user_date ON daily_ad_claims(user_id, claim_date);
CREATE INDEX IF NOT EXISTS idx_link_claims_user_date ON daily_link_claims(user_id, claim_date);
CREATE INDEX IF NOT EXISTS idx_coupon_claims_user ON user_coupon_claims(user_id);
"""
